"""
Data generation script for catalog and account tables
This script generates data for:
- Categories and products with size/finish variants
- Customers with a default address
- Coupons
- An admin account

Orders, carts and reviews are created through the API.
"""
import random
from datetime import timedelta
from decimal import Decimal

from faker import Faker
from sqlalchemy.exc import SQLAlchemyError

from printshop.models import (
    Address, Admin, Cart, CartItem, Category, Coupon, CouponUsage, DiscountType, Order,
    OrderItem, OrderStatusHistory, Payment, Product, ProductImage, ProductVariant,
    Review, ReviewHelpfulVote, User, WishlistItem, Brand, CategoryImage,
)
from printshop.services.catalog import slugify
from printshop.utils.database import SessionLocal, utcnow
from printshop.utils.security import hash_password

fake = Faker(['en_IN', 'en_US'])

DEFAULT_PASSWORD = "password123"

CATEGORY_DATA = [
    ("Business Cards", "Premium business cards in matte, gloss and textured stocks"),
    ("Flyers & Leaflets", "Single and double sided flyers for events and promotions"),
    ("Posters", "Large format posters printed on satin and photo paper"),
    ("Stickers & Labels", "Die-cut stickers, sheet labels and roll labels"),
    ("T-Shirts", "Custom printed cotton and blended apparel"),
    ("Mugs", "Ceramic and enamel mugs with full wrap printing"),
    ("Banners", "Vinyl and fabric banners for indoor and outdoor use"),
    ("Stationery", "Letterheads, envelopes and notepads"),
    ("Photo Prints", "Photo prints, canvases and framed prints"),
    ("Packaging", "Custom boxes, mailers and paper bags"),
]

# category -> (product name, description, min price, max price, variant names)
BRAND_DATA = [
    ("PaperCraft", "Specialty paper stocks and card finishes"),
    ("InkWorks", "Pigment ink and apparel print specialists"),
    ("ClayHouse", "Ceramic blanks for sublimation printing"),
    ("SignPro", "Large format media and banner materials"),
]

PRODUCT_TEMPLATES = {
    "Business Cards": [
        ("Matte Business Card", "350gsm matte laminated cards, pack of 100", 299, 799, ["Standard", "Rounded corners"]),
        ("Spot UV Business Card", "Raised spot UV finish on 400gsm stock", 599, 1499, ["Front only", "Both sides"]),
    ],
    "Flyers & Leaflets": [
        ("A5 Flyer", "130gsm gloss A5 flyers, pack of 250", 499, 1299, ["Single sided", "Double sided"]),
        ("Tri-fold Leaflet", "A4 folded to DL, 170gsm", 899, 2499, ["Gloss", "Matte"]),
    ],
    "Posters": [
        ("Satin Poster", "Vivid colours on 200gsm satin paper", 199, 999, ["A3", "A2", "A1"]),
    ],
    "Stickers & Labels": [
        ("Die-cut Sticker", "Waterproof vinyl stickers cut to shape", 149, 899, ["5 cm", "7.5 cm", "10 cm"]),
        ("Roll Labels", "Paper labels supplied on a roll", 999, 3999, ["500 labels", "1000 labels"]),
    ],
    "T-Shirts": [
        ("Classic Cotton Tee", "180gsm combed cotton, front print", 399, 799, ["S", "M", "L", "XL"]),
        ("Oversized Tee", "240gsm heavyweight cotton, front and back print", 599, 1199, ["M", "L", "XL"]),
    ],
    "Mugs": [
        ("Ceramic Mug", "11oz white ceramic mug with wrap print", 249, 499, ["White", "Black inside"]),
    ],
    "Banners": [
        ("Vinyl Banner", "440gsm PVC banner with eyelets", 799, 4999, ["3x2 ft", "6x3 ft", "8x4 ft"]),
    ],
    "Stationery": [
        ("Letterhead", "100gsm bond paper letterheads, pack of 100", 699, 1499, ["A4"]),
        ("Notepad", "50 sheet glued notepads", 199, 499, ["A5", "A6"]),
    ],
    "Photo Prints": [
        ("Canvas Print", "Gallery wrapped canvas on pine frame", 999, 4999, ["12x12 in", "16x20 in", "24x36 in"]),
    ],
    "Packaging": [
        ("Mailer Box", "Corrugated mailer boxes with full colour print", 1999, 7999, ["Small", "Medium", "Large"]),
    ],
}


class DataGenerator:
    def __init__(self, db=None):
        self.db = db or SessionLocal()
        self._owns_session = db is None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._owns_session:
            self.db.close()

    def _commit(self, label: str, rows: list) -> list:
        try:
            self.db.commit()
            print(f"✓ Created {len(rows)} {label}")
            return rows
        except SQLAlchemyError as e:
            print(f"✗ Error creating {label}: {e}")
            self.db.rollback()
            return []

    def generate_categories(self, count: int = 10):
        """Generate product categories"""
        print(f"Generating {count} categories...")

        categories = []
        for name, description in CATEGORY_DATA[:count]:
            category = Category(name=name, slug=slugify(name), description=description)
            categories.append(category)
            self.db.add(category)
        return self._commit("categories", categories)

    def generate_brands(self):
        """Generate product brands"""
        print(f"Generating {len(BRAND_DATA)} brands...")

        brands = []
        for name, description in BRAND_DATA:
            brand = Brand(name=name, slug=slugify(name), description=description)
            brands.append(brand)
            self.db.add(brand)
        return self._commit("brands", brands)

    def generate_products(self, count: int = 40):
        """Generate products with variants for existing categories"""
        print(f"Generating {count} products...")

        categories = [c for c in self.db.query(Category).all() if c.name in PRODUCT_TEMPLATES]
        if not categories:
            print("No categories found. Please generate categories first.")
            return []

        brands = self.db.query(Brand).all()
        products = []
        used_slugs = {slug for (slug,) in self.db.query(Product.slug)}
        for _ in range(count):
            category = random.choice(categories)
            name, description, min_price, max_price, variant_names = random.choice(PRODUCT_TEMPLATES[category.name])
            name = f"{fake.color_name()} {name}"

            slug = base = slugify(name)
            n = 2
            while slug in used_slugs:
                slug = f"{base}-{n}"
                n += 1
            used_slugs.add(slug)

            base_price = Decimal(random.randint(min_price, max_price))
            on_sale = random.random() < 0.3
            product = Product(
                category_id=category.category_id,
                brand_id=random.choice(brands).brand_id if brands and random.random() < 0.6 else None,
                name=name,
                slug=slug,
                sku=f"{category.slug[:3].upper()}{fake.unique.random_number(digits=6, fix_len=True)}",
                description=description,
                base_price=base_price,
                selling_price=(base_price * Decimal("0.85")).quantize(Decimal("1")) if on_sale else None,
                stock=random.randint(20, 500),
                is_featured=random.random() < 0.2,
                is_active=random.choice([True, True, True, False]),  # 75% active
            )
            product.variants = [
                ProductVariant(
                    name=variant_name,
                    price_modifier=Decimal(step * random.choice([0, 50, 100])),
                    stock=random.randint(10, 200),
                )
                for step, variant_name in enumerate(variant_names)
            ]
            products.append(product)
            self.db.add(product)
        return self._commit("products", products)

    def generate_customers(self, count: int = 25):
        """Generate customer accounts, each with a default address"""
        print(f"Generating {count} customers...")

        password_hash = hash_password(DEFAULT_PASSWORD)
        customers = []
        for _ in range(count):
            name = fake.name()
            phone = f"9{random.randint(100000000, 999999999)}"
            user = User(
                email=fake.unique.email().lower(),
                name=name,
                phone=phone,
                password_hash=password_hash,
            )
            user.addresses = [Address(
                label="Home",
                name=name,
                phone=phone,
                line1=fake.street_address(),
                city=fake.city(),
                state=fake.state(),
                postal_code=fake.postcode(),
                is_default=True,
            )]
            customers.append(user)
            self.db.add(user)
        return self._commit("customers", customers)

    def generate_coupons(self):
        """Generate a fixed set of coupons covering each discount rule"""
        print("Generating coupons...")

        now = utcnow()
        coupon_data = [
            ("WELCOME10", "Welcome offer", DiscountType.PERCENTAGE, 10, None, Decimal("200"), None, 1, 0, 90),
            ("FLAT100", "Flat 100 off", DiscountType.FIXED, 100, Decimal("999"), None, 500, 1, 0, 30),
            ("BULK20", "Bulk order discount", DiscountType.PERCENTAGE, 20, Decimal("4999"), Decimal("1500"), None, 3, 0, 60),
            ("SUMMER15", "Summer sale", DiscountType.PERCENTAGE, 15, None, Decimal("500"), 200, 1, -60, -1),
        ]
        coupons = []
        for (code, name, kind, value, min_amount, max_discount, limit, per_user,
             start_offset, end_offset) in coupon_data:
            coupon = Coupon(
                code=code,
                name=name,
                description=f"{name} ({code})",
                discount_type=kind,
                discount_value=Decimal(value),
                min_purchase_amount=min_amount,
                max_discount_amount=max_discount,
                usage_limit=limit,
                usage_limit_per_user=per_user,
                valid_from=now + timedelta(days=start_offset),
                valid_until=now + timedelta(days=end_offset),
            )
            coupons.append(coupon)
            self.db.add(coupon)
        return self._commit("coupons", coupons)

    def generate_admin(self, username: str = "admin", password: str = "admin123"):
        """Create the back-office admin account"""
        if self.db.query(Admin).filter(Admin.username == username).first():
            print(f"Admin '{username}' already exists")
            return []
        admin = Admin(
            username=username,
            email=f"{username}@printshop.local",
            name="Administrator",
            password_hash=hash_password(password),
        )
        self.db.add(admin)
        return self._commit("admin accounts", [admin])

    def clear_all_data(self):
        """Clear all data from database"""
        print("Clearing all data...")
        try:
            # Delete in correct order to avoid foreign key constraints
            for model in (CouponUsage, Payment, OrderStatusHistory, OrderItem, Order, ReviewHelpfulVote,
                          Review, CartItem, Cart, WishlistItem, ProductImage, ProductVariant, Product,
                          Brand, CategoryImage, Category, Address, Coupon, User, Admin):
                self.db.query(model).delete()
            self.db.commit()
            print("✓ All data cleared")
        except SQLAlchemyError as e:
            print(f"✗ Error clearing data: {e}")
            self.db.rollback()

    def generate_all_data(self, categories=10, products=40, customers=25):
        """Generate the full seed data set"""
        print("=== Generating Seed Data ===")

        self.clear_all_data()

        categories = self.generate_categories(categories)
        if not categories:
            print("Failed to generate categories. Stopping.")
            return

        brands = self.generate_brands()
        products = self.generate_products(products)
        customers = self.generate_customers(customers)
        coupons = self.generate_coupons()
        self.generate_admin()

        print("\n=== Seed Data Generation Complete ===")
        print(f"Categories: {len(categories)}")
        print(f"Brands: {len(brands)}")
        print(f"Products: {len(products)}")
        print(f"Customers: {len(customers)} (password: {DEFAULT_PASSWORD})")
        print(f"Coupons: {len(coupons)}")


def main():
    """Main function to run data generation"""
    import argparse

    parser = argparse.ArgumentParser(description="Generate seed data for the print shop")
    parser.add_argument("--categories", type=int, default=10, help="Number of categories to generate")
    parser.add_argument("--products", type=int, default=40, help="Number of products to generate")
    parser.add_argument("--customers", type=int, default=25, help="Number of customers to generate")
    parser.add_argument("--clear", action="store_true", help="Clear all existing data")

    args = parser.parse_args()

    with DataGenerator() as generator:
        if args.clear:
            generator.clear_all_data()
        else:
            generator.generate_all_data(
                categories=args.categories,
                products=args.products,
                customers=args.customers,
            )


if __name__ == "__main__":
    main()
