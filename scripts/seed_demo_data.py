"""
Seed script: populate a demo supermarket company through the service layer.

What it creates:
- Company + main store (document store and relational mirror) owned by --owner-id.
- One extra store (Sucursal Norte).
- Products with initial stock (ENTRADA) in both stores.
- Customers and providers.
- Sales from the main store, some of them with a customer (paid invoice).

Needs both stores reachable (POSTGRES_* and MONGODB_* settings):
    docker compose exec api python scripts/seed_demo_data.py \
        --company-name "Super Demo Market" --nit 901234567-8 \
        --owner-id auth0|demo-admin --products 200 --sales 150

Note: This is intended for development environments only.
"""

# Add project root to sys.path so `inventa.*` imports work even if CWD changes
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import argparse
import random
from decimal import Decimal

from inventa.core.exceptions import AppError, InsufficientStockError
from inventa.database.database import SessionLocal
from inventa.database.documents import get_document_store
from inventa.modules.auth.models import UserCompany
from inventa.modules.auth.schemas import Principal, TenantContext
from inventa.modules.company.schemas import TenantCreate
from inventa.modules.company.service import provision_tenant
from inventa.modules.contacts.schemas import CustomerCreate, ProviderCreate
from inventa.modules.contacts.service import create_customer, create_provider
from inventa.modules.inventory.schemas import MovementCreate
from inventa.modules.inventory.service import InventoryService
from inventa.modules.pos.models import PaymentMethod
from inventa.modules.pos.schemas import SaleCreate, SaleItemCreate
from inventa.modules.pos.service import SaleService
from inventa.modules.products.schemas import ProductCreate
from inventa.modules.products.service import create_product
from inventa.modules.stores.models import Store
from inventa.modules.stores.schemas import StoreCreate
from inventa.modules.stores.service import create_store

PRODUCT_NAMES = [
    "Arroz", "Aceite", "Azúcar", "Café", "Leche", "Panela", "Frijol", "Lenteja",
    "Atún", "Pasta", "Harina", "Sal", "Chocolate", "Galletas", "Jabón", "Detergente",
]
PRESENTATIONS = ["250g", "500g", "1kg", "1L", "2L", "x6", "x12"]
CUSTOMER_NAMES = ["Juan Pérez", "María López", "Carlos Gómez", "Laura Martínez", "Andrés Rojas"]


def pick(seq):
    return random.choice(seq)


def create_company(db, documents, owner: Principal, name: str, nit: str) -> TenantContext:
    result = provision_tenant(db, documents, owner, TenantCreate(
        company_name=name,
        nit=nit,
        company_email="contacto@superdemo.test",
        company_phone="6011234567",
        company_address="Cra 1 # 2-34, Bogotá",
        store_name="Principal",
    ))
    membership = db.query(UserCompany).filter(
        UserCompany.user_id == owner.external_id,
        UserCompany.company_id == result["tenant_id"],
    ).one()
    return TenantContext(principal=owner, tenant_id=result["tenant_id"],
                         role=membership.role, membership_id=membership.id)


def create_products(db, context, stores, product_count: int):
    inventory = InventoryService(db)
    products = []
    for i in range(product_count):
        product = create_product(db, context, ProductCreate(
            name=f"{pick(PRODUCT_NAMES)} {pick(PRESENTATIONS)} #{i + 1}",
            sku=f"SKU-{i + 1:05d}",
            price=Decimal(random.randrange(1500, 60000, 100)),
            cost=Decimal(random.randrange(1000, 1500, 100)),
            min_stock=random.randint(2, 10),
        ))
        for store in stores:
            inventory.record_movement(context, MovementCreate(
                type="ENTRADA", product_id=product.id, store_id=store.id,
                quantity=random.randint(5, 80), reference="Inventario inicial",
            ))
        products.append(product)
        if len(products) % 50 == 0:
            print(f"  Products created: {len(products)}")
    return products


def create_contacts(db, context):
    customers = [
        create_customer(db, context, CustomerCreate(name=name, id_number=str(1000000000 + i)))
        for i, name in enumerate(CUSTOMER_NAMES)
    ]
    providers = [
        create_provider(db, context, ProviderCreate(name=f"Distribuidora {i + 1}", nit=f"80{i:07d}-1"))
        for i in range(3)
    ]
    return customers, providers


def create_sales(db, context, store, products, customers, sale_count: int) -> int:
    service = SaleService(db)
    created = 0
    for _ in range(sale_count):
        items = [
            SaleItemCreate(product_id=product.id, quantity=random.randint(1, 3))
            for product in random.sample(products, k=min(len(products), random.randint(1, 4)))
        ]
        customer = pick(customers) if random.random() < 0.3 else None
        try:
            service.process_sale(context, SaleCreate(
                store_id=store.id,
                customer_id=customer.id if customer else None,
                payment_method=pick([m.value for m in PaymentMethod]),
                items=items,
            ))
            created += 1
        except InsufficientStockError:
            continue
    return created


def main():
    parser = argparse.ArgumentParser(description="Seed supermarket demo data")
    parser.add_argument("--company-name", default="Super Demo Market")
    parser.add_argument("--nit", default="901234567-8")
    parser.add_argument("--owner-id", default="demo-admin")
    parser.add_argument("--products", type=int, default=200)
    parser.add_argument("--sales", type=int, default=150)
    args = parser.parse_args()

    owner = Principal(external_id=args.owner_id, first_name="Admin", last_name="Demo",
                      email="admin@superdemo.test")
    db = SessionLocal()
    try:
        documents = get_document_store()
        context = create_company(db, documents, owner, args.company_name, args.nit)
        main_store = db.query(Store).filter_by(tenant_id=context.tenant_id, is_main=True).one()
        north = create_store(db, documents, context, StoreCreate(name="Sucursal Norte"))

        print("Creating products...")
        products = create_products(db, context, [main_store, north], args.products)

        print("Creating contacts (customers/providers)...")
        customers, providers = create_contacts(db, context)
        print(f"Customers: {len(customers)}, Providers: {len(providers)}")

        print("Creating sales...")
        sales_created = create_sales(db, context, main_store, products, customers, args.sales)
        print(f"Sales created: {sales_created}")

        print("\nSeed completed.")
        print("Company:")
        print(f"  Name:     {args.company_name}")
        print(f"  Company ID (tenant_id): {context.tenant_id}")
        print("Headers for API requests:")
        print(f"  X-Company-ID: {context.tenant_id}")
    except AppError as e:
        print(f"Seed failed: {e}")
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    main()
