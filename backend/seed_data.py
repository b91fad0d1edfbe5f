"""
Database seeding script for demo data.

Creates one user per role, a project with a few plots and the default
tiered commission rules, so a sale can be processed right away.
Run this script after database is set up but before first use.
"""

import asyncio
import sys
from decimal import Decimal
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from backend.app.db.session import AsyncSessionLocal
from backend.app.domain.commissions.commission_service import CommissionService
from backend.app.models.user import User
from backend.app.models.enums import UserRole
from backend.app.models.project import Project
from backend.app.models.plot import Plot, PlotStatus
from sqlalchemy import select


async def seed_data():
    """
    Seed demo data.

    Creates:
    - ADMIN, AGENT, BUYER and SELLER users
    - Project "Green Valley" with three available plots
    - Global commission tiers: 0-5 marla at 2%, 5-10 marla at 2.5%
    """
    async with AsyncSessionLocal() as db:
        print("🌱 Starting seeding...")

        result = await db.execute(select(Project).where(Project.code == "GV"))
        if result.scalar_one_or_none():
            print("ℹ️  Demo project already exists, skipping seeding")
            return

        users = {
            role: User(email=f"{role.value.lower()}@plotledger.local", name=role.value.title(), role=role)
            for role in UserRole
        }
        db.add_all(users.values())

        project = Project(name="Green Valley", code="GV", city="Lahore", total_area_marla=1200)
        db.add(project)
        await db.flush()

        for plot_no, size, price in [("A-101", "5", "6500000"), ("A-102", "7", "10000000"), ("B-201", "10", "14500000")]:
            db.add(Plot(
                project_id=project.id,
                plot_no=plot_no,
                size_marla=Decimal(size),
                price=Decimal(price),
                status=PlotStatus.AVAILABLE,
                seller_id=users[UserRole.SELLER].id,
                booked_by_agent_id=users[UserRole.AGENT].id,
            ))
        await db.commit()
        print("✅ Created users, project GV and plots A-101, A-102, B-201")

        admin_id = users[UserRole.ADMIN].id
        await CommissionService.create_rule(
            db, "percent", "2", min_size=0, max_size=5, priority=1,
            description="Small plots", created_by=admin_id
        )
        await CommissionService.create_rule(
            db, "percent", "2.5", min_size=5, max_size=10, priority=1,
            description="Standard plots", created_by=admin_id
        )
        print("✅ Created commission tiers (0-5 marla: 2%, 5-10 marla: 2.5%)")

        print("\n🎉 Seeding completed successfully!")
        print("\nTry: POST /v1/sales with a plot id, buyer id and sale_price")


if __name__ == "__main__":
    asyncio.run(seed_data())
