"""
Category, Brand, Product, ProductVariant, ProductImage and CategoryImage models
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, Boolean, Float
from sqlalchemy import DECIMAL
from sqlalchemy.orm import relationship
from printshop.utils.database import Base, utcnow


class Category(Base):
    __tablename__ = "categories"

    category_id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False, unique=True)
    slug = Column(String(120), nullable=False, unique=True, index=True)
    description = Column(Text)
    image_url = Column(String(500))
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utcnow)

    # Relationships
    products = relationship("Product", back_populates="category")
    images = relationship("CategoryImage", back_populates="category", cascade="all, delete-orphan",
                          order_by="CategoryImage.display_order")

    def __repr__(self):
        return f"<Category(id={self.category_id}, name={self.name})>"


class Brand(Base):
    __tablename__ = "brands"

    brand_id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    slug = Column(String(120), nullable=False, unique=True, index=True)
    logo_url = Column(String(500))
    description = Column(Text)
    website = Column(String(255))
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utcnow)

    # Relationships
    products = relationship("Product", back_populates="brand")

    def __repr__(self):
        return f"<Brand(id={self.brand_id}, name={self.name})>"


class Product(Base):
    __tablename__ = "products"

    product_id = Column(Integer, primary_key=True, index=True)
    category_id = Column(Integer, ForeignKey("categories.category_id"), nullable=False, index=True)
    brand_id = Column(Integer, ForeignKey("brands.brand_id"), index=True)
    name = Column(String(200), nullable=False)
    slug = Column(String(220), nullable=False, unique=True, index=True)
    sku = Column(String(100), unique=True)
    description = Column(Text)
    base_price = Column(DECIMAL(10, 2), nullable=False)
    selling_price = Column(DECIMAL(10, 2))
    stock = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    is_featured = Column(Boolean, nullable=False, default=False)
    rating = Column(Float, nullable=False, default=0)
    total_reviews = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    category = relationship("Category", back_populates="products")
    brand = relationship("Brand", back_populates="products")
    variants = relationship("ProductVariant", back_populates="product", cascade="all, delete-orphan")
    images = relationship("ProductImage", back_populates="product", cascade="all, delete-orphan",
                          order_by="ProductImage.display_order")
    order_items = relationship("OrderItem", back_populates="product")
    reviews = relationship("Review", back_populates="product", cascade="all, delete-orphan")

    @property
    def primary_image_url(self):
        for image in self.images:
            if image.is_primary:
                return image.url
        return self.images[0].url if self.images else None

    def __repr__(self):
        return f"<Product(id={self.product_id}, name={self.name}, price={self.base_price})>"


class ProductVariant(Base):
    __tablename__ = "product_variants"

    variant_id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.product_id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    sku = Column(String(100))
    price_modifier = Column(DECIMAL(10, 2), nullable=False, default=0)
    stock = Column(Integer, nullable=False, default=0)
    available = Column(Boolean, nullable=False, default=True)

    # Relationships
    product = relationship("Product", back_populates="variants")

    def __repr__(self):
        return f"<ProductVariant(id={self.variant_id}, name={self.name}, modifier={self.price_modifier})>"


class ProductImage(Base):
    __tablename__ = "product_images"

    image_id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.product_id"), nullable=False, index=True)
    url = Column(String(500), nullable=False)
    s3_key = Column(String(500))
    alt_text = Column(String(255))
    is_primary = Column(Boolean, nullable=False, default=False)
    display_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow)

    # Relationships
    product = relationship("Product", back_populates="images")

    def __repr__(self):
        return f"<ProductImage(id={self.image_id}, product_id={self.product_id})>"


class CategoryImage(Base):
    __tablename__ = "category_images"

    image_id = Column(Integer, primary_key=True, index=True)
    category_id = Column(Integer, ForeignKey("categories.category_id"), nullable=False, index=True)
    url = Column(String(500), nullable=False)
    s3_key = Column(String(500))
    alt_text = Column(String(255))
    is_primary = Column(Boolean, nullable=False, default=False)
    display_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow)

    # Relationships
    category = relationship("Category", back_populates="images")

    def __repr__(self):
        return f"<CategoryImage(id={self.image_id}, category_id={self.category_id})>"
