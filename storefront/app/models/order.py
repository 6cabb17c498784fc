"""
Order and OrderItem database models.

An order carries a snapshot of the customer and shipping address taken at
checkout, plus the carrier shipment fields written when a shipment is booked
and kept in sync by carrier tracking updates.
"""

from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey, Enum, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from storefront.app.db.session import Base
from storefront.app.models.order_enums import OrderStatus, PaymentStatus


class Order(Base):
    """
    Customer order.

    At most one carrier shipment belongs to an order; its identifiers live on
    the order row itself (custom and short tracking references, carrier
    shipment id).
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    order_number = Column(String(50), unique=True, nullable=False, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    order_date = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    status = Column(Enum(OrderStatus), default=OrderStatus.PENDING, nullable=False, index=True)
    total_amount = Column(Numeric(12, 2), nullable=False, default=0)
    notes = Column(Text, nullable=True)

    # Customer snapshot
    customer_name = Column(String(200), nullable=False, default="")
    customer_email = Column(String(255), nullable=False, default="")
    customer_phone = Column(String(50), nullable=True)

    # Shipping address snapshot
    shipping_full_name = Column(String(200), nullable=True)
    shipping_address_line1 = Column(String(255), nullable=True)
    shipping_address_line2 = Column(String(255), nullable=True)
    shipping_city = Column(String(100), nullable=True)
    shipping_province = Column(String(100), nullable=True)
    shipping_postal_code = Column(String(20), nullable=True)
    shipping_country = Column(String(100), nullable=True)
    shipping_method = Column(String(100), nullable=True)

    # Payment
    payment_method = Column(String(50), nullable=True)
    payment_status = Column(Enum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False)

    # Carrier shipment
    tracking_number = Column(String(100), nullable=True, index=True)  # custom tracking reference
    short_tracking_reference = Column(String(100), nullable=True, index=True)
    carrier_shipment_id = Column(Integer, nullable=True, index=True)
    carrier_name = Column(String(100), nullable=True)
    carrier_status = Column(String(50), nullable=True)
    shipping_cost = Column(Numeric(12, 2), nullable=True)
    service_level_code = Column(String(20), nullable=True)
    service_level_name = Column(String(100), nullable=True)
    estimated_delivery = Column(String(10), nullable=True)  # YYYY-MM-DD
    shipped_date = Column(DateTime(timezone=True), nullable=True)
    delivered_date = Column(DateTime(timezone=True), nullable=True)
    last_carrier_event_at = Column(DateTime(timezone=True), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True)

    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self):
        return f"<Order(id={self.id}, number='{self.order_number}', status='{self.status.value}')>"


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, nullable=False)
    product_name = Column(String(200), nullable=False, default="")
    size = Column(String(20), nullable=True)
    color = Column(String(50), nullable=True)
    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(Numeric(12, 2), nullable=False, default=0)

    order = relationship("Order", back_populates="items")

    def __repr__(self):
        return f"<OrderItem(id={self.id}, order_id={self.order_id}, qty={self.quantity})>"
