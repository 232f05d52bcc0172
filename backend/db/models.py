from datetime import datetime
from sqlalchemy import (
    BigInteger, Column, Integer, Text, Float, Boolean, Index,
    DateTime,
)
from db.database import Base


# Every table is keyed by (user_id, natural key). JSON-shaped columns hold
# serialized camelCase records, exactly as the local backend stores them.


class PresetRow(Base):
    __tablename__ = "presets"

    user_id = Column(Text, primary_key=True)
    preset_id = Column(Text, primary_key=True)
    name = Column(Text, nullable=False)
    habits = Column(Text, nullable=False, default="[]")  # JSON array of PresetItem
    tasks = Column(Text, nullable=False, default="[]")  # JSON array of PresetItem
    updated_at = Column(BigInteger, nullable=False, default=0)  # epoch ms
    created_at = Column(DateTime, default=datetime.utcnow)


class DayPlanRow(Base):
    __tablename__ = "day_plans"

    user_id = Column(Text, primary_key=True)
    date = Column(Text, primary_key=True)  # YYYY-MM-DD
    active_preset_id = Column(Text)
    preset_updated_at = Column(BigInteger)
    items = Column(Text, nullable=False, default="[]")  # JSON array of DayPlanItem
    archived = Column(Text, nullable=False, default="[]")  # JSON array of DayPlanItem
    is_sealed = Column(Boolean, nullable=False, default=False)
    updated_at = Column(BigInteger, nullable=False, default=0)


class DaySummaryRow(Base):
    __tablename__ = "day_summaries"

    user_id = Column(Text, primary_key=True)
    date = Column(Text, primary_key=True)
    operator_pct = Column(Integer, nullable=False, default=0)
    operator_total = Column(Integer, nullable=False, default=0)
    operator_done = Column(Integer, nullable=False, default=0)
    is_sealed = Column(Boolean, nullable=False, default=False)
    sealed_at = Column(BigInteger)
    total_score_pct = Column(Integer, nullable=False, default=0)
    habits_pct = Column(Integer, nullable=False, default=0)
    tasks_pct_capped = Column(Integer, nullable=False, default=0)
    habits_total = Column(Integer, nullable=False, default=0)
    habits_done = Column(Integer, nullable=False, default=0)
    tasks_total = Column(Integer, nullable=False, default=0)
    tasks_done = Column(Integer, nullable=False, default=0)
    status = Column(Text, nullable=False, default="failed")  # perfect | complete | partial | failed
    xp_earned = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)


class UserProgressRow(Base):
    __tablename__ = "user_progress"

    user_id = Column(Text, primary_key=True)
    xp = Column(Integer, nullable=False, default=0)
    rank_key = Column(Text, nullable=False, default="recruit")
    xp_to_next = Column(Integer, nullable=False, default=0)
    best_streak = Column(Integer, nullable=False, default=0)
    current_streak = Column(Integer, nullable=False, default=0)
    last_sealed_date = Column(Text)
    active_preset_id = Column(Text)
    updated_at = Column(BigInteger, nullable=False, default=0)


class JournalEntryRow(Base):
    __tablename__ = "journal_entries"

    user_id = Column(Text, primary_key=True)
    entry_id = Column(Text, primary_key=True)
    date = Column(Text, nullable=False)
    content = Column(Text, nullable=False, default="")
    created_at = Column(BigInteger, nullable=False, default=0)
    updated_at = Column(BigInteger, nullable=False, default=0)


class JournalActiveEntryRow(Base):
    __tablename__ = "journal_active_entry"

    user_id = Column(Text, primary_key=True)
    active_entry_id = Column(Text)
    updated_at = Column(BigInteger, nullable=False, default=0)


class GoalRow(Base):
    __tablename__ = "goals"

    user_id = Column(Text, primary_key=True)
    goal_id = Column(Text, primary_key=True)
    text = Column(Text, nullable=False)
    tag = Column(Text)
    done = Column(Boolean, nullable=False, default=False)
    done_at = Column(BigInteger)
    created_at = Column(BigInteger, nullable=False, default=0)
    updated_at = Column(BigInteger, nullable=False, default=0)


class TransactionRow(Base):
    __tablename__ = "transactions"

    user_id = Column(Text, primary_key=True)
    transaction_id = Column(Text, primary_key=True)
    kind = Column(Text, nullable=False)  # income | expense
    amount = Column(Float, nullable=False)
    currency = Column(Text, nullable=False, default="GBP")
    category = Column(Text, nullable=False, default="")
    note = Column(Text)
    date = Column(Text, nullable=False)
    created_at = Column(BigInteger, nullable=False, default=0)
    updated_at = Column(BigInteger, nullable=False, default=0)


Index("idx_day_plans_user_preset", DayPlanRow.user_id, DayPlanRow.active_preset_id)
Index("idx_day_summaries_user_sealed", DaySummaryRow.user_id, DaySummaryRow.is_sealed, DaySummaryRow.date)
Index("idx_transactions_user_date", TransactionRow.user_id, TransactionRow.date)
