from __future__ import annotations

from ..extensions import db
from techstore.time_utils import to_utc_z


ROLE_CUSTOMER = "customer"
ROLE_PRODUCT_MANAGER = "product_manager"
ROLE_SALES_MANAGER = "sales_manager"

ROLES = (ROLE_CUSTOMER, ROLE_PRODUCT_MANAGER, ROLE_SALES_MANAGER)


class User(db.Model):
    """
    Storefront account.

    Only identity and role live here; credentials and sessions belong to the
    auth layer, which is outside the commerce engine.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.CheckConstraint(
            "role IN ('customer', 'product_manager', 'sales_manager')",
            name="ck_users_role",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False, unique=True)
    role = db.Column(db.String(32), nullable=False, default=ROLE_CUSTOMER, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<User id={self.id} role={self.role!r}>"

    @property
    def is_manager(self) -> bool:
        return self.role in (ROLE_PRODUCT_MANAGER, ROLE_SALES_MANAGER)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "created_at": to_utc_z(self.created_at),
        }
