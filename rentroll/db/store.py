from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date
from typing import Any, Protocol

import psycopg2

"""Datastore collaborators for tenant / lease writes.

Each call is its own unit of work (the backing PostgreSQL connection runs in
autocommit), the same way the hosted backend's REST API behaves. Atomicity of
tenant + lease is approximated by the executor with a compensating delete.

- PostgresTenantStore: psycopg2 against the `tenants` / `leases` tables
- InMemoryTenantStore: dry-run store (and test double) with the same contract
"""

__all__ = [
    "StoreError",
    "TenantStore",
    "Lease",
    "PostgresTenantStore",
    "InMemoryTenantStore",
]

LEASE_STATUS_ACTIVE = "active"


class StoreError(Exception):
    pass


@dataclass(frozen=True)
class Lease:
    id: str
    tenant_id: str
    property_address: str
    unit_number: str | None
    rent_amount_cents: int
    due_date: date
    status: str = LEASE_STATUS_ACTIVE


class TenantStore(Protocol):
    def create_tenant(self, name: str, email: str) -> str: ...

    def delete_tenant(self, tenant_id: str) -> None: ...

    def create_lease(
        self,
        tenant_id: str,
        property_address: str,
        unit_number: str | None,
        rent_amount_cents: int,
        due_date: date,
        status: str = LEASE_STATUS_ACTIVE,
    ) -> str: ...

    def fetch_tenant_emails(self) -> dict[str, str]: ...

    def update_tenant_name(self, tenant_id: str, name: str) -> None: ...

    def find_active_lease(self, tenant_id: str) -> str | None: ...

    def update_lease(
        self,
        lease_id: str,
        property_address: str,
        unit_number: str | None,
        rent_amount_cents: int,
        due_date: date,
    ) -> None: ...


class PostgresTenantStore:
    """TenantStore over a psycopg2 connection (expected in autocommit mode)."""

    def __init__(self, connection: Any) -> None:
        self._conn = connection

    def _execute(self, sql: str, params: tuple[Any, ...], fetch: str | None = None) -> Any:
        try:
            with self._conn.cursor() as cur:
                cur.execute(sql, params)
                if fetch == "one":
                    return cur.fetchone()
                if fetch == "all":
                    return cur.fetchall()
                return cur.rowcount
        except psycopg2.Error as e:
            raise StoreError(str(e).strip() or type(e).__name__) from e

    def create_tenant(self, name: str, email: str) -> str:
        row = self._execute(
            "INSERT INTO tenants (name, email) VALUES (%s, %s) RETURNING id",
            (name, email),
            fetch="one",
        )
        if not row:
            raise StoreError("tenant insert returned no id")
        return str(row[0])

    def delete_tenant(self, tenant_id: str) -> None:
        self._execute("DELETE FROM tenants WHERE id = %s", (tenant_id,))

    def create_lease(
        self,
        tenant_id: str,
        property_address: str,
        unit_number: str | None,
        rent_amount_cents: int,
        due_date: date,
        status: str = LEASE_STATUS_ACTIVE,
    ) -> str:
        row = self._execute(
            "INSERT INTO leases (tenant_id, property_address, unit_number, rent_amount_cents, due_date, status)"
            " VALUES (%s, %s, %s, %s, %s, %s) RETURNING id",
            (tenant_id, property_address, unit_number, rent_amount_cents, due_date, status),
            fetch="one",
        )
        if not row:
            raise StoreError("lease insert returned no id")
        return str(row[0])

    def fetch_tenant_emails(self) -> dict[str, str]:
        rows = self._execute("SELECT id, email FROM tenants", (), fetch="all") or []
        return {str(email).lower(): str(tid) for tid, email in rows if email}

    def update_tenant_name(self, tenant_id: str, name: str) -> None:
        self._execute("UPDATE tenants SET name = %s WHERE id = %s", (name, tenant_id))

    def find_active_lease(self, tenant_id: str) -> str | None:
        row = self._execute(
            "SELECT id FROM leases WHERE tenant_id = %s AND status = %s ORDER BY created_at LIMIT 1",
            (tenant_id, LEASE_STATUS_ACTIVE),
            fetch="one",
        )
        return str(row[0]) if row else None

    def update_lease(
        self,
        lease_id: str,
        property_address: str,
        unit_number: str | None,
        rent_amount_cents: int,
        due_date: date,
    ) -> None:
        self._execute(
            "UPDATE leases SET property_address = %s, unit_number = %s, rent_amount_cents = %s, due_date = %s"
            " WHERE id = %s",
            (property_address, unit_number, rent_amount_cents, due_date, lease_id),
        )


class InMemoryTenantStore:
    """Dict-backed TenantStore used by --dry-run and tests.

    Tenant emails are unique (case-insensitive), like the `tenants.email`
    constraint. ``fail_tenant_emails`` / ``fail_lease_emails`` /
    ``fail_delete`` inject failures.
    """

    def __init__(
        self,
        *,
        fail_tenant_emails: set[str] | None = None,
        fail_lease_emails: set[str] | None = None,
        fail_delete: bool = False,
    ) -> None:
        self.tenants: dict[str, dict[str, str]] = {}
        self.leases: dict[str, Lease] = {}
        self.deleted_tenant_ids: list[str] = []
        self._fail_tenant = {e.lower() for e in (fail_tenant_emails or set())}
        self._fail_lease = {e.lower() for e in (fail_lease_emails or set())}
        self._fail_delete = fail_delete

    def add_tenant(self, name: str, email: str) -> str:
        """Seed an existing tenant (bypasses failure injection)."""
        tid = str(uuid.uuid4())
        self.tenants[tid] = {"name": name, "email": email}
        return tid

    def create_tenant(self, name: str, email: str) -> str:
        key = email.lower()
        if key in self._fail_tenant:
            raise StoreError(f"tenant insert rejected for {email}")
        if any(t["email"].lower() == key for t in self.tenants.values()):
            raise StoreError(f'duplicate key value violates unique constraint "tenants_email_key": {email}')
        return self.add_tenant(name, email)

    def delete_tenant(self, tenant_id: str) -> None:
        if self._fail_delete:
            raise StoreError(f"delete rejected for tenant {tenant_id}")
        self.tenants.pop(tenant_id, None)
        self.deleted_tenant_ids.append(tenant_id)

    def create_lease(
        self,
        tenant_id: str,
        property_address: str,
        unit_number: str | None,
        rent_amount_cents: int,
        due_date: date,
        status: str = LEASE_STATUS_ACTIVE,
    ) -> str:
        tenant = self.tenants.get(tenant_id)
        if tenant is None:
            raise StoreError(f"tenant not found: {tenant_id}")
        if tenant["email"].lower() in self._fail_lease:
            raise StoreError(f"lease insert rejected for {tenant['email']}")
        lid = str(uuid.uuid4())
        self.leases[lid] = Lease(
            id=lid,
            tenant_id=tenant_id,
            property_address=property_address,
            unit_number=unit_number,
            rent_amount_cents=rent_amount_cents,
            due_date=due_date,
            status=status,
        )
        return lid

    def fetch_tenant_emails(self) -> dict[str, str]:
        return {t["email"].lower(): tid for tid, t in self.tenants.items()}

    def update_tenant_name(self, tenant_id: str, name: str) -> None:
        if tenant_id not in self.tenants:
            raise StoreError(f"tenant not found: {tenant_id}")
        self.tenants[tenant_id]["name"] = name

    def find_active_lease(self, tenant_id: str) -> str | None:
        for lease in self.leases.values():
            if lease.tenant_id == tenant_id and lease.status == LEASE_STATUS_ACTIVE:
                return lease.id
        return None

    def update_lease(
        self,
        lease_id: str,
        property_address: str,
        unit_number: str | None,
        rent_amount_cents: int,
        due_date: date,
    ) -> None:
        lease = self.leases.get(lease_id)
        if lease is None:
            raise StoreError(f"lease not found: {lease_id}")
        self.leases[lease_id] = Lease(
            id=lease.id,
            tenant_id=lease.tenant_id,
            property_address=property_address,
            unit_number=unit_number,
            rent_amount_cents=rent_amount_cents,
            due_date=due_date,
            status=lease.status,
        )
