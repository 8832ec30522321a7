"""Initial BookSwap schema: users, books, swap_requests, badges

Revision ID: 5c2e8d1f4a90
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "5c2e8d1f4a90"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("postcode", sa.String(10), nullable=False),
        sa.Column("subscription_status", sa.String(20), nullable=False, server_default="inactive"),
        sa.Column("billing_customer_id", sa.String(100), nullable=True),
        sa.Column("swaps", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_users_postcode_swaps", "users", ["postcode", "swaps"])
    op.create_index("ix_users_billing_customer", "users", ["billing_customer_id"])

    op.create_table(
        "books",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("title", sa.String(300), nullable=False),
        sa.Column("author", sa.String(200), nullable=False),
        sa.Column("isbn", sa.String(20), nullable=True),
        sa.Column("image", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("condition", sa.String(20), nullable=False, server_default="good"),
        sa.Column("type", sa.String(20), nullable=False, server_default="adult"),
        sa.Column("status", sa.String(20), nullable=False, server_default="available"),
        sa.Column("postcode", sa.String(10), nullable=False),
        sa.Column("owner_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("owner_name", sa.String(100), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_books_postcode_status", "books", ["postcode", "status"])
    op.create_index("ix_books_owner", "books", ["owner_id"])

    op.create_table(
        "swap_requests",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("book_id", sa.String(36), sa.ForeignKey("books.id"), nullable=False),
        sa.Column("requester_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("owner_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("meeting_location", sa.Text(), nullable=True),
        sa.Column("meeting_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_swap_requests_book_status", "swap_requests", ["book_id", "status"])
    op.create_index("ix_swap_requests_requester", "swap_requests", ["requester_id"])
    op.create_index("ix_swap_requests_owner", "swap_requests", ["owner_id"])

    op.create_table(
        "badges",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("name", sa.String(50), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("user_id", "name", name="uq_badges_user_name"),
    )


def downgrade() -> None:
    op.drop_table("badges")
    op.drop_index("ix_swap_requests_owner", table_name="swap_requests")
    op.drop_index("ix_swap_requests_requester", table_name="swap_requests")
    op.drop_index("ix_swap_requests_book_status", table_name="swap_requests")
    op.drop_table("swap_requests")
    op.drop_index("ix_books_owner", table_name="books")
    op.drop_index("ix_books_postcode_status", table_name="books")
    op.drop_table("books")
    op.drop_index("ix_users_billing_customer", table_name="users")
    op.drop_index("ix_users_postcode_swaps", table_name="users")
    op.drop_table("users")
