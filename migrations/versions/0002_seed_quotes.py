"""seed quotes

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-19

Starter set for the quote of the day. Selection is by creation order, so
rows are inserted in a fixed order.
"""
from alembic import op
import sqlalchemy as sa

revision = "0002"
down_revision = "0001"
branch_labels = None
depends_on = None

QUOTES = [
    ("Yesterday I was clever, so I wanted to change the world. Today I am wise, "
     "so I am changing myself.", "Rumi", "MOTIVATION"),
    ("The wound is the place where the Light enters you.", "Rumi", "MIND"),
    ("What you seek is seeking you.", "Rumi", "MOTIVATION"),
    ("Let yourself be silently drawn by the strange pull of what you really love. "
     "It will not lead you astray.", "Rumi", "BALANCE"),
    ("The quieter you become, the more you can hear.", "Rumi", "MIND"),
    ("Set your life on fire. Seek those who fan your flames.", "Rumi", "MOTIVATION"),
    ("Be like a tree and let the dead leaves drop.", "Rumi", "BALANCE"),
    ("Respond to every call that excites your spirit.", "Rumi", "MOTIVATION"),
    ("When you try to live your life based on what others think of you, "
     "you lose sight of who you are.", "Jay Shetty", "MIND"),
    ("Take care of your body. It's the only place you have to live.", "Jim Rohn", "BODY"),
    ("We are what we repeatedly do. Excellence, then, is not an act, but a habit.",
     "Will Durant", "BALANCE"),
    ("Every day, do something for your Body and Mind.", None, "BALANCE"),
]

quotes_table = sa.table(
    "quotes",
    sa.column("text", sa.Text),
    sa.column("author", sa.String),
    sa.column("category", sa.String),
)


def upgrade() -> None:
    op.bulk_insert(
        quotes_table,
        [{"text": t, "author": a, "category": c} for t, a, c in QUOTES],
    )


def downgrade() -> None:
    op.execute(
        quotes_table.delete().where(quotes_table.c.text.in_([t for t, _, _ in QUOTES]))
    )
