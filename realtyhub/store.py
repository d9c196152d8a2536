# realtyhub/store.py
# Persistence for agencies and listings (SQLite, JSON text columns for sub-objects)

from __future__ import annotations

import json
import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path as FsPath
from typing import Any, Dict, Generator, List, Optional, Tuple

try:
    from realtyhub.config import DATABASE_PATH, IS_DEV
    from realtyhub.models import Agency, Listing, SubscriptionState
except ModuleNotFoundError:
    from config import DATABASE_PATH, IS_DEV
    from models import Agency, Listing, SubscriptionState


# Columns a caller may sort listings by
SORTABLE_COLUMNS = {"created_at", "updated_at", "price", "views", "bedrooms", "title"}


@dataclass
class ListingQuery:
    """
    Storage-layer listing filter.

    None means "no constraint". Price bounds are inclusive, city is a
    case-insensitive substring match, everything else is exact.
    """
    is_active: Optional[bool] = True
    availability: Optional[str] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    bedrooms: Optional[int] = None
    property_type: Optional[str] = None
    city: Optional[str] = None
    furnished: Optional[str] = None
    listing_type: Optional[str] = None
    agency_id: Optional[int] = None
    search: Optional[str] = None


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _value(v: Any) -> Any:
    # str-Enum members compare equal to their value but bind as the member
    return getattr(v, "value", v)


def build_where(query: ListingQuery) -> Tuple[str, List[Any]]:
    """Translate a ListingQuery into a parameterized WHERE clause."""
    clauses: List[str] = []
    params: List[Any] = []

    if query.is_active is not None:
        clauses.append("is_active = ?")
        params.append(1 if query.is_active else 0)
    if query.availability:
        clauses.append("availability = ?")
        params.append(_value(query.availability))
    if query.min_price is not None:
        clauses.append("price >= ?")
        params.append(float(query.min_price))
    if query.max_price is not None:
        clauses.append("price <= ?")
        params.append(float(query.max_price))
    if query.bedrooms is not None:
        clauses.append("bedrooms = ?")
        params.append(int(query.bedrooms))
    if query.property_type:
        clauses.append("property_type = ?")
        params.append(_value(query.property_type))
    if query.furnished:
        clauses.append("furnished = ?")
        params.append(_value(query.furnished))
    if query.listing_type:
        clauses.append("listing_type = ?")
        params.append(_value(query.listing_type))
    if query.agency_id is not None:
        clauses.append("agency_id = ?")
        params.append(int(query.agency_id))
    if query.city:
        clauses.append("LOWER(city) LIKE ? ESCAPE '\\'")
        params.append(f"%{_escape_like(query.city.strip().lower())}%")
    if query.search:
        pattern = f"%{_escape_like(query.search.strip())}%"
        clauses.append("(title LIKE ? ESCAPE '\\' COLLATE NOCASE OR description LIKE ? ESCAPE '\\' COLLATE NOCASE)")
        params.extend([pattern, pattern])

    if not clauses:
        return "", params
    return "WHERE " + " AND ".join(clauses), params


class Store:
    """
    Logical persistence operations the marketplace core relies on.

    Implementations must give read-your-writes within one request and an
    all-or-nothing transaction() scope.
    """

    def transaction(self):
        raise NotImplementedError

    def get_agency(self, agency_id: int) -> Optional[Agency]:
        raise NotImplementedError

    def find_agency_by_owner(self, owner_id: int) -> Optional[Agency]:
        raise NotImplementedError

    def list_agencies(self, search: Optional[str] = None, limit: int = 12, offset: int = 0) -> Tuple[List[Agency], int]:
        raise NotImplementedError

    def insert_agency(self, agency: Agency) -> Agency:
        raise NotImplementedError

    def update_agency(self, agency: Agency) -> None:
        raise NotImplementedError

    def get_listing(self, listing_id: int) -> Optional[Listing]:
        raise NotImplementedError

    def find_listings(
        self,
        query: ListingQuery,
        limit: Optional[int] = None,
        offset: int = 0,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> List[Listing]:
        raise NotImplementedError

    def count_listings(self, query: ListingQuery) -> int:
        raise NotImplementedError

    def insert_listing(self, listing: Listing) -> Listing:
        raise NotImplementedError

    def update_listing(self, listing: Listing) -> None:
        raise NotImplementedError

    def delete_listing(self, listing_id: int) -> bool:
        raise NotImplementedError

    def increment_views(self, listing_id: int) -> None:
        raise NotImplementedError


# ---------------------------------------------------------
# Row (de)serialization
# ---------------------------------------------------------

def _dump(model: Any) -> Optional[str]:
    if model is None:
        return None
    if hasattr(model, "model_dump"):
        return json.dumps(model.model_dump(mode="json"))
    return json.dumps(model)


def _load(text: Optional[str], default: Any = None) -> Any:
    if not text:
        return default
    return json.loads(text)


def _ts(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _parse_ts(text: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(text) if text else None


def row_to_agency(row: sqlite3.Row) -> Agency:
    subscription = SubscriptionState(
        plan_tier=row["plan_tier"],
        billing_cycle=row["billing_cycle"],
        start_date=_parse_ts(row["start_date"]),
        end_date=_parse_ts(row["end_date"]),
        storage_limit_bytes=row["storage_limit_bytes"],
        listing_limit=row["listing_limit"],
    )
    return Agency(
        id=row["id"],
        owner_id=row["owner_id"],
        agency_name=row["agency_name"],
        email=row["email"],
        phone=row["phone"],
        description=row["description"],
        address=_load(row["address_json"]),
        website=row["website"],
        logo=row["logo"],
        social_links=_load(row["social_links_json"]),
        subscription=subscription,
        storage_used_bytes=row["storage_used_bytes"] or 0,
        listing_ids=_load(row["listing_ids_json"], []),
        is_active=bool(row["is_active"]),
        is_verified=bool(row["is_verified"]),
        created_at=_parse_ts(row["created_at"]),
    )


def row_to_listing(row: sqlite3.Row) -> Listing:
    return Listing(
        id=row["id"],
        agency_id=row["agency_id"],
        broker_id=row["broker_id"],
        title=row["title"],
        description=row["description"],
        price=row["price"],
        property_type=row["property_type"],
        listing_type=row["listing_type"],
        location=_load(row["location_json"]),
        google_maps_link=row["google_maps_link"],
        images=_load(row["images_json"], []),
        bedrooms=row["bedrooms"] or 0,
        bathrooms=row["bathrooms"] or 0,
        area=_load(row["area_json"]),
        furnished=row["furnished"],
        availability=row["availability"],
        features=_load(row["features_json"], []),
        contact_details=_load(row["contact_details_json"]),
        social_links=_load(row["social_links_json"]),
        views=row["views"] or 0,
        is_active=bool(row["is_active"]),
        is_featured=bool(row["is_featured"]),
        created_at=_parse_ts(row["created_at"]),
        updated_at=_parse_ts(row["updated_at"]),
    )


def _agency_params(agency: Agency) -> Dict[str, Any]:
    sub = agency.subscription
    return {
        "owner_id": agency.owner_id,
        "agency_name": agency.agency_name,
        "email": agency.email,
        "phone": agency.phone,
        "description": agency.description,
        "address_json": _dump(agency.address),
        "website": agency.website,
        "logo": agency.logo,
        "social_links_json": _dump(agency.social_links),
        "plan_tier": sub.plan_tier.value,
        "billing_cycle": sub.billing_cycle.value,
        "start_date": _ts(sub.start_date),
        "end_date": _ts(sub.end_date),
        "storage_limit_bytes": sub.storage_limit_bytes,
        "listing_limit": sub.listing_limit,
        "storage_used_bytes": agency.storage_used_bytes,
        "listing_ids_json": json.dumps(list(agency.listing_ids)),
        "is_active": 1 if agency.is_active else 0,
        "is_verified": 1 if agency.is_verified else 0,
        "created_at": _ts(agency.created_at),
    }


def _listing_params(listing: Listing) -> Dict[str, Any]:
    return {
        "agency_id": listing.agency_id,
        "broker_id": listing.broker_id,
        "title": listing.title,
        "description": listing.description,
        "price": float(listing.price),
        "property_type": listing.property_type.value,
        "listing_type": listing.listing_type.value,
        "city": listing.location.city,
        "location_json": _dump(listing.location),
        "google_maps_link": listing.google_maps_link,
        "images_json": json.dumps([img.model_dump(mode="json") for img in listing.images]),
        "bedrooms": listing.bedrooms,
        "bathrooms": listing.bathrooms,
        "area_json": _dump(listing.area),
        "furnished": listing.furnished.value,
        "availability": listing.availability.value,
        "features_json": json.dumps(list(listing.features)),
        "contact_details_json": _dump(listing.contact_details),
        "social_links_json": _dump(listing.social_links),
        "views": listing.views,
        "is_active": 1 if listing.is_active else 0,
        "is_featured": 1 if listing.is_featured else 0,
        "created_at": _ts(listing.created_at),
        "updated_at": _ts(listing.updated_at),
    }


# ---------------------------------------------------------
# SQLite implementation
# ---------------------------------------------------------

class SQLiteStore(Store):
    """
    Store backed by a single sqlite3 connection.

    The connection is shared across FastAPI worker threads, so every access
    goes through a re-entrant lock; transaction() holds it for the whole scope
    so no other thread's statements land inside an open transaction.
    """

    def __init__(self, path: Optional[str] = None):
        if path is None:
            path = DATABASE_PATH
        if path != ":memory:" and not FsPath(path).is_absolute():
            path = str(FsPath(__file__).resolve().parent / path)
        self.path = path
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._depth = 0
        self.init_schema()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    # ---- transactions ---------------------------------------------------

    @contextmanager
    def transaction(self) -> Generator["SQLiteStore", None, None]:
        """All statements inside commit together or roll back together."""
        with self._lock:
            self._depth += 1
            try:
                yield self
            except BaseException:
                if self._depth == 1:
                    self._conn.rollback()
                    print("[STORE] Transaction rolled back")
                raise
            else:
                if self._depth == 1:
                    self._conn.commit()
            finally:
                self._depth -= 1

    def _execute(self, sql: str, params: Any = ()) -> sqlite3.Cursor:
        with self._lock:
            cur = self._conn.execute(sql, params)
            if self._depth == 0 and not sql.lstrip().upper().startswith("SELECT"):
                self._conn.commit()
            return cur

    # ---- schema ---------------------------------------------------------

    def init_schema(self) -> None:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS agencies (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    owner_id INTEGER NOT NULL UNIQUE,
                    agency_name TEXT NOT NULL,
                    email TEXT NOT NULL,
                    phone TEXT NOT NULL,
                    description TEXT,
                    address_json TEXT,
                    website TEXT,
                    logo TEXT,
                    social_links_json TEXT,

                    plan_tier TEXT NOT NULL DEFAULT 'basic',
                    billing_cycle TEXT NOT NULL DEFAULT 'monthly',
                    start_date TEXT,
                    end_date TEXT,
                    storage_limit_bytes INTEGER NOT NULL DEFAULT 1073741824,
                    listing_limit INTEGER NOT NULL DEFAULT 10,

                    storage_used_bytes INTEGER NOT NULL DEFAULT 0 CHECK (storage_used_bytes >= 0),
                    listing_ids_json TEXT NOT NULL DEFAULT '[]',

                    is_active INTEGER DEFAULT 1,
                    is_verified INTEGER DEFAULT 0,
                    created_at TEXT
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS listings (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    agency_id INTEGER NOT NULL REFERENCES agencies(id),
                    broker_id INTEGER,
                    title TEXT NOT NULL,
                    description TEXT NOT NULL,
                    price REAL NOT NULL,
                    property_type TEXT NOT NULL,
                    listing_type TEXT NOT NULL,
                    city TEXT,
                    location_json TEXT NOT NULL,
                    google_maps_link TEXT,
                    images_json TEXT NOT NULL DEFAULT '[]',
                    bedrooms INTEGER DEFAULT 0,
                    bathrooms INTEGER DEFAULT 0,
                    area_json TEXT,
                    furnished TEXT DEFAULT 'unfurnished',
                    availability TEXT DEFAULT 'available',
                    features_json TEXT NOT NULL DEFAULT '[]',
                    contact_details_json TEXT,
                    social_links_json TEXT,
                    views INTEGER DEFAULT 0,
                    is_active INTEGER DEFAULT 1,
                    is_featured INTEGER DEFAULT 0,
                    created_at TEXT,
                    updated_at TEXT
                )
                """
            )
            cur.execute("CREATE INDEX IF NOT EXISTS idx_listings_city_type_price ON listings(city, property_type, price)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_listings_agency_availability ON listings(agency_id, availability)")
            self._conn.commit()
        if IS_DEV:
            print(f"[MIGRATION] Ensured agencies/listings schema at {self.path}")

    # ---- agencies -------------------------------------------------------

    def get_agency(self, agency_id: int) -> Optional[Agency]:
        row = self._execute("SELECT * FROM agencies WHERE id = ?", (agency_id,)).fetchone()
        return row_to_agency(row) if row else None

    def find_agency_by_owner(self, owner_id: int) -> Optional[Agency]:
        row = self._execute("SELECT * FROM agencies WHERE owner_id = ?", (owner_id,)).fetchone()
        return row_to_agency(row) if row else None

    def list_agencies(self, search: Optional[str] = None, limit: int = 12, offset: int = 0) -> Tuple[List[Agency], int]:
        """Active, verified agencies; search matches name or address city."""
        where = "WHERE is_active = 1 AND is_verified = 1"
        params: List[Any] = []
        if search:
            pattern = f"%{_escape_like(search.strip())}%"
            where += (
                " AND (agency_name LIKE ? ESCAPE '\\' COLLATE NOCASE"
                " OR json_extract(address_json, '$.city') LIKE ? ESCAPE '\\' COLLATE NOCASE)"
            )
            params.extend([pattern, pattern])
        total = self._execute(f"SELECT COUNT(*) AS n FROM agencies {where}", params).fetchone()["n"]
        rows = self._execute(
            f"SELECT * FROM agencies {where} ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?",
            params + [limit, offset],
        ).fetchall()
        return [row_to_agency(r) for r in rows], int(total)

    def insert_agency(self, agency: Agency) -> Agency:
        params = _agency_params(agency)
        columns = ", ".join(params)
        placeholders = ", ".join("?" for _ in params)
        cur = self._execute(
            f"INSERT INTO agencies ({columns}) VALUES ({placeholders})",
            tuple(params.values()),
        )
        agency.id = cur.lastrowid
        return agency

    def update_agency(self, agency: Agency) -> None:
        params = _agency_params(agency)
        assignments = ", ".join(f"{col} = ?" for col in params)
        self._execute(
            f"UPDATE agencies SET {assignments} WHERE id = ?",
            tuple(params.values()) + (agency.id,),
        )

    # ---- listings -------------------------------------------------------

    def get_listing(self, listing_id: int) -> Optional[Listing]:
        row = self._execute("SELECT * FROM listings WHERE id = ?", (listing_id,)).fetchone()
        return row_to_listing(row) if row else None

    def find_listings(
        self,
        query: ListingQuery,
        limit: Optional[int] = None,
        offset: int = 0,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> List[Listing]:
        where, params = build_where(query)
        column = sort_by if sort_by in SORTABLE_COLUMNS else "created_at"
        direction = "ASC" if str(sort_order).lower() == "asc" else "DESC"
        sql = f"SELECT * FROM listings {where} ORDER BY {column} {direction}, id {direction}"
        if limit is not None:
            sql += " LIMIT ? OFFSET ?"
            params = params + [int(limit), int(offset)]
        rows = self._execute(sql, params).fetchall()
        return [row_to_listing(r) for r in rows]

    def count_listings(self, query: ListingQuery) -> int:
        where, params = build_where(query)
        row = self._execute(f"SELECT COUNT(*) AS n FROM listings {where}", params).fetchone()
        return int(row["n"])

    def insert_listing(self, listing: Listing) -> Listing:
        params = _listing_params(listing)
        columns = ", ".join(params)
        placeholders = ", ".join("?" for _ in params)
        cur = self._execute(
            f"INSERT INTO listings ({columns}) VALUES ({placeholders})",
            tuple(params.values()),
        )
        listing.id = cur.lastrowid
        return listing

    def update_listing(self, listing: Listing) -> None:
        params = _listing_params(listing)
        # views only moves through increment_views
        params.pop("views")
        assignments = ", ".join(f"{col} = ?" for col in params)
        self._execute(
            f"UPDATE listings SET {assignments} WHERE id = ?",
            tuple(params.values()) + (listing.id,),
        )

    def delete_listing(self, listing_id: int) -> bool:
        cur = self._execute("DELETE FROM listings WHERE id = ?", (listing_id,))
        return cur.rowcount > 0

    def increment_views(self, listing_id: int) -> None:
        self._execute("UPDATE listings SET views = views + 1 WHERE id = ?", (listing_id,))
