"""
Business logic for Aari orders, customers, the shop and users.

Every service receives its collaborators (database, object storage, cache)
through the constructor. Nothing is cached in memory between requests: each
read goes back to MongoDB (or to the optional shop cache).
"""

import logging
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence

from bson import ObjectId
from pydantic.alias_generators import to_camel
from pymongo import ReturnDocument
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

from cache import CacheError
from database import collection_name, create_document, get_documents, utcnow
from errors import Conflict, Internal, InvalidInput, NotFound
from schemas import (
    MAX_DESIGNS,
    Aari,
    AariCompletedSummary,
    AariPendingSummary,
    AariSubmission,
    ClientPriceUpdate,
    Customer,
    CustomerRegistration,
    OrderStatus,
    Page,
    Shop,
    User,
    UserLookup,
    WorkerPriceUpdate,
    order_view,
    phone_variants,
)
from storage import DesignFile
from validation import check, validate

logger = logging.getLogger(__name__)

PENDING_FIELDS = ["name", "designs", "status", "order_id", "address", "delivery_date", "worker_price", "work_type"]
COMPLETED_FIELDS = ["order_id", "name", "phone_number", "designs", "status", "completed_date", "client_price", "worker_price"]
# largest skip a MongoDB find command can encode (int64)
MAX_SKIP = 2 ** 63 - 1


class OrderService:
    """Aari order lifecycle: submit, list, complete, price and delete."""

    collection = collection_name(Aari)

    def __init__(self, db: Database, storage):
        self.db = db
        self.storage = storage

    @property
    def orders(self) -> Collection:
        return self.db[self.collection]

    def submit_order(self, fields: Mapping[str, Any], files: Sequence[DesignFile]) -> str:
        """
        Validate the order, upload its designs, then persist it as pending.

        Uploads run concurrently and the document is only written once all of
        them succeed. Objects already uploaded when a later one fails stay in
        the bucket.
        """
        result = check(AariSubmission, fields)
        violations = list(result.violations)
        if not files:
            violations.append("design: At least one design file is required")
        elif len(files) > MAX_DESIGNS:
            violations.append(f"design: At most {MAX_DESIGNS} design files are allowed")
        if violations:
            raise InvalidInput(violations=violations)

        designs = self._upload_designs(files)
        order = Aari(**result.value.model_dump(), designs=designs, status=OrderStatus.PENDING)

        try:
            create_document(self.db, self.collection, order)
        except DuplicateKeyError as e:
            raise Conflict("Order ID already exists", field="orderId") from e
        except PyMongoError as e:
            logger.error(f"Failed to save Aari order {order.order_id}: {e}")
            raise Internal("Failed to submit Aari input", original_error=e) from e

        logger.info(f"Aari order {order.order_id} saved successfully with {len(designs)} designs")
        return order.order_id

    def _upload_designs(self, files: Sequence[DesignFile]) -> List[str]:
        # map() keeps results in submission order and re-raises the first failure
        with ThreadPoolExecutor(max_workers=len(files)) as pool:
            return list(pool.map(self.storage.upload, files))

    def list_pending(self, page: int = 1, limit: int = 10) -> List[Dict[str, Any]]:
        paging = validate(Page, {"page": page, "limit": limit})
        if paging.skip >= MAX_SKIP:
            return []
        docs = get_documents(
            self.db,
            self.collection,
            {"status": OrderStatus.PENDING.value},
            projection={f: 1 for f in PENDING_FIELDS},
            sort=[("delivery_date", 1), ("_id", 1)],
            skip=paging.skip,
            limit=paging.limit,
        )
        return [AariPendingSummary.model_validate(d).model_dump(by_alias=True) for d in docs]

    def list_completed(self, page: int = 1, limit: int = 10) -> List[Dict[str, Any]]:
        paging = validate(Page, {"page": page, "limit": limit})
        if paging.skip >= MAX_SKIP:
            return []
        docs = get_documents(
            self.db,
            self.collection,
            {"status": OrderStatus.COMPLETED.value},
            projection={f: 1 for f in COMPLETED_FIELDS},
            sort=[("completed_date", -1), ("_id", -1)],
            skip=paging.skip,
            limit=paging.limit,
        )
        summaries = []
        for d in docs:
            designs = d.get("designs") or []
            summary = AariCompletedSummary.model_validate({**d, "design": designs[0] if designs else None})
            summaries.append(summary.model_dump(by_alias=True))
        return summaries

    def get_order(self, order_id: str) -> Dict[str, Any]:
        doc = self.orders.find_one({"order_id": order_id})
        if doc is None:
            raise NotFound("Order not found")
        return order_view(doc)

    def get_design_urls(self, order_id: str) -> List[str]:
        doc = self.orders.find_one({"order_id": order_id}, {"designs": 1})
        if doc is None:
            raise NotFound("Order not found")
        designs = doc.get("designs") or []
        if not designs:
            raise NotFound("No design URLs found for this order")
        return designs

    def delete_order(self, order_id: str) -> None:
        result = self.orders.delete_one({"order_id": order_id})
        if result.deleted_count == 0:
            raise NotFound("Order not found")
        logger.info(f"Order {order_id} deleted successfully")

    def mark_completed(self, order_id: str, worker_price: Any) -> Dict[str, Any]:
        update = validate(WorkerPriceUpdate, {"workerPrice": worker_price})
        now = utcnow()
        changes = {
            "status": OrderStatus.COMPLETED.value,
            "worker_price": update.worker_price,
            "updated_at": now,
        }
        # first completion stamps completed_date; later calls must leave it alone
        doc = self.orders.find_one_and_update(
            {"order_id": order_id, "completed_date": None},
            {"$set": {**changes, "completed_date": now}},
            return_document=ReturnDocument.AFTER,
        )
        if doc is None:
            doc = self.orders.find_one_and_update(
                {"order_id": order_id},
                {"$set": changes},
                return_document=ReturnDocument.AFTER,
            )
        if doc is None:
            raise NotFound("Order not found")

        logger.info(f"Order {order_id} marked as completed with workerPrice {update.worker_price}")
        return order_view(doc)

    def set_client_price(self, selector: Mapping[str, str], client_price: Any) -> Dict[str, Any]:
        """
        Set the client price on one order.

        `selector` is {"orderId": ...} or {"phoneNumber": ...}; a phone number
        picks the most recently created order for that number.
        """
        result = check(ClientPriceUpdate, {"clientPrice": client_price})
        violations = list(result.violations)
        if selector.get("orderId"):
            query, sort, missing = {"order_id": selector["orderId"]}, None, "Order not found"
        elif selector.get("phoneNumber"):
            query, sort = {"phone_number": selector["phoneNumber"]}, [("created_at", -1)]
            missing = "No order found for this phone number"
        else:
            violations.append("selector: orderId or phoneNumber is required")
        if violations:
            raise InvalidInput(violations=violations)

        doc = self.orders.find_one_and_update(
            query,
            {"$set": {"client_price": result.value.client_price, "updated_at": utcnow()}},
            sort=sort,
            return_document=ReturnDocument.AFTER,
        )
        if doc is None:
            raise NotFound(missing)
        logger.info(f"Client price for order {doc['order_id']} set to {result.value.client_price}")
        return order_view(doc)


class CustomerService:
    collection = collection_name(Customer)

    def __init__(self, db: Database):
        self.db = db

    def register_customer(self, fields: Mapping[str, Any]) -> str:
        registration = validate(CustomerRegistration, fields)
        customer = Customer(
            **registration.model_dump(exclude={"customer_id"}),
            customer_id=registration.customer_id or str(ObjectId()),
        )

        customers = self.db[self.collection]
        for field in ("customer_id", "phone_number"):
            if customers.find_one({field: getattr(customer, field)}, {"_id": 1}) is not None:
                raise Conflict(f"{to_camel(field)} already exists", field=to_camel(field))

        try:
            create_document(self.db, self.collection, customer)
        except DuplicateKeyError as e:
            # lost a race with a concurrent registration
            key_pattern = (e.details or {}).get("keyPattern") or {}
            field = to_camel(next(iter(key_pattern), "customer_id"))
            raise Conflict(f"{field} already exists", field=field) from e

        logger.info(f"Customer {customer.customer_id} saved successfully")
        return customer.customer_id


class ShopService:
    """Shop details, optionally memoized in a TTL cache."""

    collection = collection_name(Shop)
    cache_key = "shopDetails"

    def __init__(self, db: Database, cache=None):
        self.db = db
        self.cache = cache

    def get_shop_details(self) -> Dict[str, Any]:
        cached = self._read_cache()
        if cached is not None:
            return cached

        doc = self.db[self.collection].find_one()
        if doc is None:
            raise NotFound("Shop not found")
        details = Shop.model_validate(doc).model_dump(by_alias=True)
        self._write_cache(details)
        return details

    def _read_cache(self) -> Optional[Dict[str, Any]]:
        if self.cache is None:
            return None
        try:
            return self.cache.get(self.cache_key)
        except CacheError as e:
            logger.warning(f"Shop cache read failed, falling back to database: {e}")
            return None

    def _write_cache(self, details: Dict[str, Any]) -> None:
        if self.cache is None:
            return
        try:
            self.cache.set(self.cache_key, details)
        except CacheError as e:
            logger.warning(f"Shop cache write failed: {e}")


class UserService:
    collection = collection_name(User)

    def __init__(self, db: Database):
        self.db = db

    def get_user_details(self, email: Optional[str], phone: Optional[str]) -> Dict[str, Any]:
        supplied = {k: v for k, v in (("email", email), ("phone", phone)) if v is not None}
        lookup = validate(UserLookup, supplied)
        query = {
            "email": {"$regex": f"^{re.escape(lookup.email)}$", "$options": "i"},
            "phone_number": {"$in": phone_variants(lookup.phone)},
        }
        doc = self.db[self.collection].find_one(query)
        if doc is None:
            raise NotFound("User not found")
        return User.model_validate(doc).model_dump(by_alias=True)


@dataclass
class Services:
    orders: OrderService
    customers: CustomerService
    shops: ShopService
    users: UserService

    @classmethod
    def build(cls, db: Database, storage, cache=None) -> "Services":
        return cls(
            orders=OrderService(db, storage),
            customers=CustomerService(db),
            shops=ShopService(db, cache),
            users=UserService(db),
        )
