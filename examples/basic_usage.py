"""
Basic Usage Example

This example demonstrates the fundamental concepts of sqliteorm:
- Declaring a record type
- Creating its table and writing records
- Querying with predicates, ordering and paging
- Following a query with a live subscription
- Grouping writes in a transaction

Run with: python examples/basic_usage.py
"""

import asyncio
from datetime import UTC, datetime

from pydantic import Field

from sqliteorm import ORM, Index, Ok, Predicate, Query, Record

# =============================================================================
# Step 1: Declare a Record
# =============================================================================
# A record is a pydantic model with an identity field. The table name is
# derived from the class name ("shopping_items") unless __table_name__ is set.


class ShoppingItem(Record):
    """An entry on a shopping list."""

    __indexes__ = [Index(("name",))]

    id: int = 0
    name: str
    quantity: int = 1
    purchased: bool = False
    added_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


# =============================================================================
# Step 2: Use the ORM
# =============================================================================


async def main():
    """Demonstrate basic sqliteorm usage."""
    print("=" * 60)
    print("sqliteorm Basic Usage Example")
    print("=" * 60)

    async with ORM.in_memory() as orm:
        (await orm.create_tables(ShoppingItem)).unwrap()
        items = orm.repository(ShoppingItem)

        print("\n1. Inserting items")
        for name, quantity in [("Apples", 6), ("Bread", 1), ("Cheese", 2)]:
            item = (await items.insert(ShoppingItem(name=name, quantity=quantity))).unwrap()
            print(f"   #{item.id} {item.name} x{item.quantity}")

        print("\n2. Querying")
        several = Query().where(Predicate.gt("quantity", 1)).order_by("name")
        for item in (await items.find_all(several)).unwrap():
            print(f"   {item.name} x{item.quantity}")
        print(f"   Total items: {(await items.count()).unwrap()}")

        print("\n3. Following the list to buy")
        to_buy = items.subscribe(Query().where_eq("purchased", False).order_by("name"))
        to_buy.observe(
            lambda result: print(f"   To buy: {[item.name for item in result.value or []]}")
        )
        await to_buy.start()

        bread = (await items.get(2)).unwrap()
        bread.purchased = True
        await items.update(bread)
        await asyncio.sleep(0.05)

        print("\n4. Restocking in one transaction")

        async def restock():
            await items.insert(ShoppingItem(name="Dates", quantity=12))
            await items.delete_where(Query().where_eq("purchased", True))
            return Ok(None)

        (await orm.transaction(restock)).unwrap()
        await asyncio.sleep(0.05)

        print("\n5. Error handling")
        result = await items.get(99)
        if not result.is_ok():
            print(f"   Lookup failed: {result.error}")

        await to_buy.aclose()

    print("\n" + "=" * 60)
    print("Example completed successfully!")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
