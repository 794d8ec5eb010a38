# Overview: Service-layer operations for customers.

from __future__ import annotations

from sqlalchemy import or_

from ..errors import ConflictError, NotFoundError
from ..extensions import db
from ..models import Customer
from ..validation import optional_date, optional_str, require_str, to_bool


def list_customers(search: str | None = None) -> list[Customer]:
    query = db.session.query(Customer)
    term = (search or "").strip()
    if term:
        like = f"%{term}%"
        query = query.filter(or_(
            Customer.first_name.ilike(like),
            Customer.last_name.ilike(like),
            Customer.email.ilike(like),
            Customer.phone.ilike(like),
        ))
    return query.order_by(Customer.first_name.asc(), Customer.last_name.asc()).all()


def get_customer(customer_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        raise NotFoundError(f"Customer {customer_id} not found")
    return customer


def create_customer(data: dict) -> Customer:
    email = optional_str(data.get("email"), max_length=255, field="email")
    if email:
        email = email.lower()
        if db.session.query(Customer.id).filter(Customer.email == email).first() is not None:
            raise ConflictError(f"A customer with email {email} already exists")

    customer = Customer(
        first_name=require_str(data.get("first_name"), "first_name", max_length=120),
        last_name=optional_str(data.get("last_name"), max_length=120, field="last_name"),
        email=email,
        phone=optional_str(data.get("phone"), max_length=32, field="phone"),
        date_of_birth=optional_date(data.get("date_of_birth"), "date_of_birth"),
        is_whale=to_bool(data.get("is_whale")),
    )
    db.session.add(customer)
    db.session.commit()
    return customer
