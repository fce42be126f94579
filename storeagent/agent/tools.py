"""
Capability registry: role-scoped tool definitions and execution for tool-calling mode.

build_capabilities(store, drafts, caller, planner) is a pure factory: it returns an
immutable tuple of capabilities whose executors are closed over the given caller.
Non-privileged callers never receive privileged-only names; authorization is by
omission, not by checks after the fact.

Every executor returns {"success", "message", "data"} plus "created" when a referent
(category or user) had to be upserted to satisfy a name-based reference.
"""

import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Literal

import bcrypt
from pydantic import BaseModel, Field, ValidationError

from storeagent.core.config import (
    CATEGORIES,
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    ORDER_STATUSES,
    ORDERS,
    PRODUCTS,
    QUERY_GEN_MAX_TOKENS,
    USER_ROLES,
    USERS,
)
from storeagent.core.errors import CapabilityError, PlannerFailure
from storeagent.core.identity import Caller
from storeagent.core.store import EntityStore, is_valid_id
from storeagent.services.draft_service import DraftSaga
from storeagent.services.seed_service import seed_sample_data

logger = logging.getLogger(__name__)

ADMIN_CAPABILITIES: tuple[str, ...] = (
    "insert_category",
    "insert_product",
    "insert_order",
    "insert_user",
    "find_products",
    "find_categories",
    "find_orders",
    "find_users",
    "update_product",
    "update_category",
    "update_order",
    "update_user",
    "delete_product",
    "delete_category",
    "delete_order",
    "delete_user",
    "get_collection_info",
    "run_aggregation",
    "generate_query",
    "sample_data",
)

USER_CAPABILITIES: tuple[str, ...] = (
    "find_products",
    "find_categories",
    "get_my_profile",
    "find_my_orders",
    "select_product",
    "unselect_product",
    "view_selection",
    "clear_selection",
    "finalize_selection",
)

PRIVILEGED_ONLY: frozenset[str] = frozenset(ADMIN_CAPABILITIES) - frozenset(USER_CAPABILITIES)

CollectionName = Literal["products", "categories", "orders", "users"]
OrderStatus = Literal["pending", "completed", "cancelled"]
Role = Literal["admin", "user"]

QUERY_GEN_SYSTEM = (
    "You are a MongoDB query generator that returns only valid JSON query objects. "
    "{ filter: { ... }, projection: { ... } }"
)


# --- parameter schemas ---

class NoArgs(BaseModel):
    pass


class FindArgs(BaseModel):
    query: dict[str, Any] = Field(default_factory=dict, description="MongoDB filter object; {} matches everything")
    projection: dict[str, int] | None = Field(None, description="MongoDB projection, e.g. {\"name\": 1, \"price\": 1}")
    sort: dict[str, int] | None = Field(None, description="Sort spec, field -> 1 (ascending) or -1 (descending)")
    offset: int = Field(0, ge=0, description="Number of matching documents to skip")
    limit: int = Field(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE, description="Maximum number of documents to return")


class UpdateArgs(BaseModel):
    query: dict[str, Any] = Field(..., description="MongoDB filter object identifying the documents to update")
    update: dict[str, Any] = Field(..., description="Fields to set, either {field: value} or {\"$set\": {field: value}}")


class UpdateProductArgs(UpdateArgs):
    category_name: str | None = Field(
        None, description="Move the products to this category, by name; the category is created if it does not exist"
    )


class DeleteArgs(BaseModel):
    query: dict[str, Any] = Field(..., description="MongoDB filter object identifying the documents to delete")


class InsertCategoryArgs(BaseModel):
    name: str = Field(..., min_length=1, description="Category name")


class InsertProductArgs(BaseModel):
    name: str = Field(..., min_length=1, description="Product name")
    price: float = Field(0, ge=0, description="Product price in rupees")
    category_id: str | None = Field(None, description="Id of the category the product belongs to")
    category_name: str | None = Field(
        None,
        description="Category name, used when no category_id is given; the category is created if it does not exist",
    )


class InsertOrderArgs(BaseModel):
    user_id: str | None = Field(None, description="Id of the user the order belongs to")
    user_name: str | None = Field(
        None, description="User name, used when no user_id is given; the user is created if it does not exist"
    )
    product_ids: list[str] = Field(default_factory=list, description="Ids of the ordered products")
    product_names: list[str] = Field(
        default_factory=list, description="Names of the ordered products; products are never created by this tool"
    )
    total_price: float | None = Field(
        None, ge=0, description="Total price in rupees; computed from current product prices when omitted"
    )
    order_status: OrderStatus = Field("pending", description="Order status")


class InsertUserArgs(BaseModel):
    name: str = Field(..., min_length=1, description="User name")
    email: str = Field(..., min_length=3, description="User email")
    role: Role = Field("user", description="Role of the user")
    password: str | None = Field(None, description="Plain password; it is hashed before storing")


class AggregationArgs(BaseModel):
    collection: CollectionName = Field(..., description="Collection to aggregate")
    pipeline: list[dict[str, Any]] = Field(..., description="MongoDB aggregation pipeline stages")


class GenerateQueryArgs(BaseModel):
    text: str = Field(..., min_length=1, description="The natural language query request")
    collection: CollectionName = Field("products", description="Collection to run the query on")


class ProductRefArgs(BaseModel):
    product_id: str | None = Field(None, description="Id of the product")
    product_name: str | None = Field(None, description="Product name, used when no product_id is given")


class SelectArgs(ProductRefArgs):
    quantity: int = Field(1, ge=1, description="How many units to add")


class MyOrdersArgs(BaseModel):
    query: dict[str, Any] = Field(default_factory=dict, description="Extra MongoDB filter on your orders")
    sort: dict[str, int] | None = Field(None, description="Sort spec, field -> 1 or -1")
    offset: int = Field(0, ge=0, description="Number of orders to skip")
    limit: int = Field(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE, description="Maximum number of orders to return")


# --- descriptors ---

def _clean_schema(node: Any) -> Any:
    """Drop pydantic's generated titles so the schema only carries what the planner needs."""
    if isinstance(node, dict):
        out = {}
        for key, value in node.items():
            if key == "title" and isinstance(value, str):
                continue
            if key == "properties" and isinstance(value, dict):
                out[key] = {name: _clean_schema(prop) for name, prop in value.items()}
            else:
                out[key] = _clean_schema(value)
        return out
    if isinstance(node, list):
        return [_clean_schema(v) for v in node]
    return node


@dataclass(frozen=True)
class Capability:
    """A named, schema-typed operation bound to one caller."""

    name: str
    description: str
    parameters: type[BaseModel]
    executor: Callable[[Any], dict[str, Any]]

    def schema(self) -> dict[str, Any]:
        schema = _clean_schema(self.parameters.model_json_schema())
        schema.setdefault("properties", {})
        schema.setdefault("required", [])
        return schema

    def describe(self) -> dict[str, Any]:
        return {"name": self.name, "description": self.description, "parameters": self.schema()}

    def invoke(self, arguments: dict[str, Any] | None) -> dict[str, Any]:
        """Validate arguments against the schema, then run the executor."""
        try:
            params = self.parameters.model_validate(arguments or {})
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'arguments'}: {err['msg']}" for err in e.errors()
            )
            raise CapabilityError(self.name, f"invalid arguments ({problems})") from e
        return self.executor(params)


@dataclass(frozen=True)
class CapabilityNotFound:
    """Lookup miss. reason is "not_authorized" for privileged-only names, else "unknown"."""

    name: str
    reason: Literal["not_authorized", "unknown"]

    @property
    def message(self) -> str:
        if self.reason == "not_authorized":
            return f"You are not authorized to perform '{self.name}'."
        return f"Capability '{self.name}' was not found."


class CapabilityRegistry:
    """Name -> descriptor map over an immutable capability tuple."""

    def __init__(self, capabilities: tuple[Capability, ...], privileged: bool) -> None:
        self._capabilities = capabilities
        self._by_name = {c.name: c for c in capabilities}
        self._privileged = privileged

    def __iter__(self):
        return iter(self._capabilities)

    def __len__(self) -> int:
        return len(self._capabilities)

    def names(self) -> list[str]:
        return [c.name for c in self._capabilities]

    def lookup(self, name: str) -> Capability | CapabilityNotFound:
        capability = self._by_name.get(name)
        if capability is not None:
            return capability
        if name in PRIVILEGED_ONLY and not self._privileged:
            return CapabilityNotFound(name, "not_authorized")
        return CapabilityNotFound(name, "unknown")

    def describe(self) -> list[dict[str, Any]]:
        return [c.describe() for c in self._capabilities]

    def to_openai_tools(self) -> list[dict[str, Any]]:
        """OpenAI function-calling format."""
        return [{"type": "function", "function": c.describe()} for c in self._capabilities]


# --- helpers ---

def _now() -> datetime:
    return datetime.now(timezone.utc)


def _ok(message: str, data: Any = None, created: list[dict[str, Any]] | None = None) -> dict[str, Any]:
    out: dict[str, Any] = {"success": True, "message": message, "data": data}
    if created:
        out["created"] = created
    return out


def _fail(message: str, data: Any = None) -> dict[str, Any]:
    return {"success": False, "message": message, "data": data}


def _hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def _strip_passwords(docs: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [{k: v for k, v in d.items() if k != "password"} for d in docs]


def _name_filter(name: str) -> dict[str, Any]:
    return {"name": {"$regex": f"^{re.escape(name.strip())}$", "$options": "i"}}


def _set_fields(name: str, update: dict[str, Any]) -> dict[str, Any]:
    """Accept {field: value} or {"$set": {...}}; other update operators are rejected."""
    if "$set" in update:
        if not isinstance(update["$set"] or {}, dict):
            raise CapabilityError(name, "$set must be an object of field values")
        extra = [k for k in update if k != "$set"]
        fields = dict(update["$set"] or {})
    else:
        extra = [k for k in update if k.startswith("$")]
        fields = dict(update)
    if extra:
        raise CapabilityError(name, f"only field updates are supported, got {', '.join(extra)}")
    for protected in ("_id", "created_at"):
        fields.pop(protected, None)
    return fields


def _strip_code_fences(text: str) -> str:
    return re.sub(r"```(?:json)?", "", text or "").strip()


# --- factory ---

def build_capabilities(
    store: EntityStore,
    drafts: DraftSaga,
    caller: Caller,
    planner: Any = None,
) -> CapabilityRegistry:
    """
    Build the registry for one caller. planner is only needed by generate_query
    (any object with complete(system, prompt, max_tokens)).
    """

    def resolve_category(name: str, create: bool) -> tuple[str | None, list[dict[str, Any]]]:
        found = store.find_one(CATEGORIES, _name_filter(name), {"_id": 1})
        if found is not None:
            return found["_id"], []
        if not create:
            return None, []
        now = _now()
        new_id = store.insert_one(CATEGORIES, {"name": name.strip(), "created_at": now, "updated_at": now})
        logger.info("[tools] created category %r id=%s", name, new_id)
        return new_id, [{"collection": CATEGORIES, "name": name.strip(), "id": new_id}]

    def resolve_user(name: str) -> tuple[str, list[dict[str, Any]]]:
        found = store.find_one(USERS, _name_filter(name), {"_id": 1})
        if found is not None:
            return found["_id"], []
        now = _now()
        new_id = store.insert_one(
            USERS,
            {"name": name.strip(), "email": None, "role": "user", "password": None, "created_at": now, "updated_at": now},
        )
        logger.info("[tools] created user %r id=%s", name, new_id)
        return new_id, [{"collection": USERS, "name": name.strip(), "id": new_id}]

    def resolve_product(args: ProductRefArgs) -> tuple[str | None, str | None]:
        """(product_id, failure message)."""
        if args.product_id:
            return args.product_id, None
        if args.product_name:
            found = store.find_one(PRODUCTS, _name_filter(args.product_name), {"_id": 1})
            if found is None:
                return None, f"Product '{args.product_name}' was not found."
            return found["_id"], None
        return None, "A product id or name is required."

    # -- generic CRUD --

    def find_in(collection: str, hide_password: bool = False) -> Callable[[FindArgs], dict[str, Any]]:
        def run(args: FindArgs) -> dict[str, Any]:
            page = store.find_paginated(collection, args.query, args.projection, args.sort, args.offset, args.limit)
            items = _strip_passwords(page["items"]) if hide_password else page["items"]
            return _ok(
                f"Found {page['total']} {collection} ({len(items)} returned)",
                {"items": items, "total": page["total"], "offset": args.offset, "limit": args.limit},
            )
        return run

    def update_in(collection: str, name: str, transform: Callable[[dict[str, Any]], dict[str, Any] | str] | None = None):
        def run(args: UpdateArgs) -> dict[str, Any]:
            fields = _set_fields(name, args.update)
            if transform is not None:
                outcome = transform(fields)
                if isinstance(outcome, str):
                    return _fail(outcome)
                fields = outcome
            if not fields:
                return _fail("Nothing to update.")
            fields["updated_at"] = _now()
            result = store.update_many(collection, args.query, {"$set": fields})
            return _ok(f"Updated {result['modified_count']} {collection}", result)
        return run

    def delete_in(collection: str) -> Callable[[DeleteArgs], dict[str, Any]]:
        def run(args: DeleteArgs) -> dict[str, Any]:
            result = store.delete_many(collection, args.query)
            return _ok(f"Deleted {result['deleted_count']} {collection}", result)
        return run

    # -- privileged executors --

    def insert_category(args: InsertCategoryArgs) -> dict[str, Any]:
        now = _now()
        new_id = store.insert_one(CATEGORIES, {"name": args.name.strip(), "created_at": now, "updated_at": now})
        return _ok(f'Category "{args.name}" added with ID: {new_id}', {"inserted_id": new_id})

    def insert_product(args: InsertProductArgs) -> dict[str, Any]:
        category_id, created = args.category_id, []
        if not category_id and args.category_name:
            category_id, created = resolve_category(args.category_name, create=True)
        now = _now()
        new_id = store.insert_one(
            PRODUCTS,
            {"name": args.name.strip(), "price": args.price, "category_id": category_id or None, "created_at": now, "updated_at": now},
        )
        message = f'Product "{args.name}" added with ID: {new_id}'
        if created:
            message += f' (category "{args.category_name}" did not exist and was created)'
        return _ok(message, {"inserted_id": new_id, "category_id": category_id}, created)

    def insert_order(args: InsertOrderArgs) -> dict[str, Any]:
        if not args.user_id and not args.user_name:
            return _fail("The order needs a user: provide a user id or name.")

        product_ids = list(args.product_ids)
        missing = []
        for pname in args.product_names:
            found = store.find_one(PRODUCTS, _name_filter(pname), {"_id": 1})
            if found is None:
                missing.append(pname)
            else:
                product_ids.append(found["_id"])
        valid = [pid for pid in product_ids if is_valid_id(pid)]
        known = {}
        if valid:
            known = {p["_id"]: p for p in store.find(PRODUCTS, {"_id": {"$in": valid}}, {"price": 1})}
        missing += [pid for pid in product_ids if pid not in known]
        if missing:
            return _fail("These products do not exist, add them first: " + ", ".join(missing), {"missing": missing})

        created: list[dict[str, Any]] = []
        user_id = args.user_id
        if not user_id:
            user_id, created = resolve_user(args.user_name)

        total = args.total_price
        if total is None:
            total = sum((known[pid].get("price") or 0) for pid in product_ids)
        now = _now()
        new_id = store.insert_one(
            ORDERS,
            {
                "user_id": user_id,
                "product_ids": product_ids,
                "total_price": total,
                "order_status": args.order_status,
                "created_at": now,
                "updated_at": now,
            },
        )
        message = f"Order added with ID: {new_id}"
        if created:
            message += f' (user "{args.user_name}" did not exist and was created)'
        return _ok(message, {"inserted_id": new_id, "user_id": user_id, "total_price": total}, created)

    def insert_user(args: InsertUserArgs) -> dict[str, Any]:
        now = _now()
        new_id = store.insert_one(
            USERS,
            {
                "name": args.name.strip(),
                "email": args.email.strip(),
                "role": args.role,
                "password": _hash_password(args.password) if args.password else None,
                "created_at": now,
                "updated_at": now,
            },
        )
        return _ok(f'User "{args.name}" added with ID: {new_id}', {"inserted_id": new_id})

    def update_product(args: UpdateProductArgs) -> dict[str, Any]:
        _set_fields("update_product", args.update)
        created: list[dict[str, Any]] = []
        update = dict(args.update)
        if args.category_name:
            category_id, created = resolve_category(args.category_name, create=True)
            if "$set" in update:
                update["$set"] = {**(update["$set"] or {}), "category_id": category_id}
            else:
                update["category_id"] = category_id
        result = update_in(PRODUCTS, "update_product")(UpdateArgs(query=args.query, update=update))
        if created:
            result["created"] = created
            result["message"] += f' (category "{args.category_name}" did not exist and was created)'
        return result

    def order_patch(fields: dict[str, Any]) -> dict[str, Any] | str:
        if "product_ids" in fields or "items" in fields:
            return "The products of an existing order cannot be changed."
        status = fields.get("order_status")
        if status is not None and status not in ORDER_STATUSES:
            return f"Order status must be one of: {', '.join(ORDER_STATUSES)}."
        return fields

    def user_patch(fields: dict[str, Any]) -> dict[str, Any] | str:
        role = fields.get("role")
        if role is not None and role not in USER_ROLES:
            return f"Role must be one of: {', '.join(USER_ROLES)}."
        if fields.get("password"):
            fields["password"] = _hash_password(str(fields["password"]))
        return fields

    def delete_category(args: DeleteArgs) -> dict[str, Any]:
        ids = [c["_id"] for c in store.find(CATEGORIES, args.query, {"_id": 1})]
        if not ids:
            return _ok("Deleted 0 categories", {"deleted_count": 0, "deleted_products": 0})
        result = store.delete_many(CATEGORIES, {"_id": {"$in": ids}})
        products = store.delete_many(PRODUCTS, {"category_id": {"$in": ids}})
        return _ok(
            f"Deleted {result['deleted_count']} categories and {products['deleted_count']} products under them",
            {"deleted_count": result["deleted_count"], "deleted_products": products["deleted_count"]},
        )

    def get_collection_info(args: NoArgs) -> dict[str, Any]:
        names = store.list_collection_names()
        return _ok(f"Found {len(names)} collections", names)

    def run_aggregation(args: AggregationArgs) -> dict[str, Any]:
        docs = store.aggregate(args.collection, args.pipeline)
        if args.collection == USERS:
            docs = _strip_passwords(docs)
        return _ok(f"Aggregation on {args.collection} returned {len(docs)} document(s)", docs)

    def generate_query(args: GenerateQueryArgs) -> dict[str, Any]:
        if planner is None:
            raise CapabilityError("generate_query", "query generation is not available")
        prompt = f"""
            Convert the following natural language request into a valid MongoDB find query
            with both "filter" and "projection" objects as JSON.

            Return ONLY a JSON object like this:
            {{"filter": {{ ... }}, "projection": {{ ... }}}}

            Rules:
            - Use MongoDB operators like $eq, $gt, $lt, $regex, $exists, etc.
            - "without timestamp columns" -> projection {{"created_at": 0, "updated_at": 0}}.
            - "only name and price" -> projection {{"name": 1, "price": 1, "_id": 0}}.
            - No filter mentioned -> empty filter {{}}.
            - Always return valid JSON (no text or code fences).

            Collection: {args.collection}
            Request: "{args.text}"
            """
        try:
            raw = planner.complete(QUERY_GEN_SYSTEM, prompt, max_tokens=QUERY_GEN_MAX_TOKENS)
        except PlannerFailure as e:
            raise CapabilityError("generate_query", "the query could not be generated") from e
        try:
            generated = json.loads(_strip_code_fences(raw))
        except json.JSONDecodeError:
            logger.warning("[tools:generate_query] unparsable query %r", raw[:200])
            return _fail("Failed to parse the generated query.")
        if not isinstance(generated, dict):
            return _fail("Failed to parse the generated query.")
        filt = generated.get("filter") or {}
        projection = generated.get("projection") or None
        if not isinstance(filt, dict) or not (projection is None or isinstance(projection, dict)):
            return _fail("Failed to parse the generated query.")
        docs = store.find(args.collection, filt, projection)
        if args.collection == USERS:
            docs = _strip_passwords(docs)
        return _ok(
            f"Query generated and executed on {args.collection}: {len(docs)} result(s).",
            {"query": {"filter": filt, "projection": projection or {}}, "count": len(docs), "items": docs},
        )

    def sample_data(args: NoArgs) -> dict[str, Any]:
        summary = seed_sample_data(store)
        return _ok(
            f"Sample data initialized: {summary['categories']} categories, {summary['products']} products",
            summary,
        )

    # -- non-privileged executors --

    def get_my_profile(args: NoArgs) -> dict[str, Any]:
        doc = store.find_one(USERS, {"_id": caller.id}, {"password": 0})
        if doc is None:
            return _fail("Your profile was not found.")
        return _ok("Found your profile", doc)

    def find_my_orders(args: MyOrdersArgs) -> dict[str, Any]:
        own = {"user_id": caller.id}
        query = {"$and": [args.query, own]} if args.query else own
        page = store.find_paginated(ORDERS, query, None, args.sort, args.offset, args.limit)
        return _ok(f"Found {page['total']} of your orders", {"items": page["items"], "total": page["total"]})

    def select_product(args: SelectArgs) -> dict[str, Any]:
        product_id, problem = resolve_product(args)
        if problem:
            return _fail(problem)
        return drafts.select(caller.id, product_id, args.quantity)

    def unselect_product(args: ProductRefArgs) -> dict[str, Any]:
        product_id, problem = resolve_product(args)
        if problem:
            return _fail(problem)
        return drafts.unselect(caller.id, product_id)

    def view_selection(args: NoArgs) -> dict[str, Any]:
        return drafts.view(caller.id)

    def clear_selection(args: NoArgs) -> dict[str, Any]:
        return drafts.clear(caller.id)

    def finalize_selection(args: NoArgs) -> dict[str, Any]:
        return drafts.finalize(caller.id)

    definitions: dict[str, tuple[str, type[BaseModel], Callable[[Any], dict[str, Any]]]] = {
        "insert_category": ("Insert a new category into the categories collection", InsertCategoryArgs, insert_category),
        "insert_product": (
            "Insert a new product. Give category_id, or category_name to reference a category by name "
            "(created if missing, reported back).",
            InsertProductArgs,
            insert_product,
        ),
        "insert_order": (
            "Insert a new order. Reference the user by user_id or user_name (created if missing) and products by "
            "product_ids or product_names (never created; missing products are reported).",
            InsertOrderArgs,
            insert_order,
        ),
        "insert_user": ("Insert a new user into the users collection", InsertUserArgs, insert_user),
        "find_products": ("Find products, with optional projection, sorting and paging", FindArgs, find_in(PRODUCTS)),
        "find_categories": ("Find categories, with optional projection, sorting and paging", FindArgs, find_in(CATEGORIES)),
        "find_orders": ("Find orders of any user", FindArgs, find_in(ORDERS)),
        "find_users": ("Find users; passwords are never returned", FindArgs, find_in(USERS, hide_password=True)),
        "update_product": ("Update products matching a filter", UpdateProductArgs, update_product),
        "update_category": ("Update categories matching a filter", UpdateArgs, update_in(CATEGORIES, "update_category")),
        "update_order": (
            "Update orders matching a filter (status and price; the product list cannot change)",
            UpdateArgs,
            update_in(ORDERS, "update_order", order_patch),
        ),
        "update_user": (
            "Update users matching a filter; a new password is hashed",
            UpdateArgs,
            update_in(USERS, "update_user", user_patch),
        ),
        "delete_product": ("Delete products matching a filter", DeleteArgs, delete_in(PRODUCTS)),
        "delete_category": (
            "Delete categories matching a filter and all products under them",
            DeleteArgs,
            delete_category,
        ),
        "delete_order": ("Delete orders matching a filter", DeleteArgs, delete_in(ORDERS)),
        "delete_user": ("Delete users matching a filter", DeleteArgs, delete_in(USERS)),
        "get_collection_info": ("List the available collections", NoArgs, get_collection_info),
        "run_aggregation": (
            "Run a MongoDB aggregation pipeline, for joins, grouping and totals",
            AggregationArgs,
            run_aggregation,
        ),
        "generate_query": (
            "Generate and execute a MongoDB find query from a natural language request; use it when no other "
            "tool fits or when specific columns are asked for",
            GenerateQueryArgs,
            generate_query,
        ),
        "sample_data": ("Initialize sample categories and products for testing", NoArgs, sample_data),
        "get_my_profile": ("Get your own user profile", NoArgs, get_my_profile),
        "find_my_orders": ("Find your own orders", MyOrdersArgs, find_my_orders),
        "select_product": (
            "Add a product to your selection (cart), by product_id or product_name; selecting it again adds to "
            "the quantity",
            SelectArgs,
            select_product,
        ),
        "unselect_product": ("Remove a product from your selection", ProductRefArgs, unselect_product),
        "view_selection": ("Show the products in your selection with current prices", NoArgs, view_selection),
        "clear_selection": ("Empty your selection", NoArgs, clear_selection),
        "finalize_selection": (
            "Place an order for everything in your selection at current prices, then empty it",
            NoArgs,
            finalize_selection,
        ),
    }

    allowed = ADMIN_CAPABILITIES if caller.is_privileged else USER_CAPABILITIES
    capabilities = tuple(
        Capability(
            name=name,
            description=definitions[name][0],
            parameters=definitions[name][1],
            executor=definitions[name][2],
        )
        for name in allowed
    )
    logger.info("[tools] built %d capabilities for role=%s", len(capabilities), caller.role)
    return CapabilityRegistry(capabilities, caller.is_privileged)
