"""create_ledger_import_schema

Revision ID: 7c1e4a9b2d30
Revises:
Create Date: 2026-10-19 09:12:40.518223

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '7c1e4a9b2d30'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('display_name', sa.String(255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'accounts',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('user_id', sa.UUID(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('display_name', sa.String(255), nullable=False),
        sa.Column('account_type', sa.Enum('CHECKING', 'SAVINGS', 'CREDIT_CARD', 'CASH', 'INVESTMENT', name='account_type'), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False),
        sa.Column('balance', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('credit_limit', sa.BigInteger(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_accounts_user_id', 'accounts', ['user_id'])
    op.create_index('ix_accounts_user_name', 'accounts', ['user_id', 'name'], unique=True)

    op.create_table(
        'categories',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('user_id', sa.UUID(), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('display_name', sa.String(100), nullable=False),
        sa.Column('category_type', sa.Enum('INCOME', 'EXPENSE', name='category_type'), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_categories_user_id', 'categories', ['user_id'])
    op.create_index('ix_categories_user_name', 'categories', ['user_id', 'name'], unique=True)

    op.create_table(
        'payees',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('user_id', sa.UUID(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('display_name', sa.String(255), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_payees_user_id', 'payees', ['user_id'])
    op.create_index('ix_payees_user_name', 'payees', ['user_id', 'name'], unique=True)

    op.create_table(
        'import_sessions',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('user_id', sa.UUID(), nullable=False),
        sa.Column('file_name', sa.String(255), nullable=False),
        sa.Column('file_size_bytes', sa.Integer(), nullable=False),
        sa.Column('raw_rows', sa.JSON(), nullable=False),
        sa.Column('preview_rows', sa.JSON(), nullable=False),
        sa.Column('detected_columns', sa.JSON(), nullable=False),
        sa.Column('total_rows', sa.Integer(), nullable=False),
        sa.Column('data_type', sa.String(20), nullable=False, server_default='unknown'),
        sa.Column('classification', sa.JSON(), nullable=True),
        sa.Column('user_confirmed_mappings', sa.JSON(), nullable=True),
        sa.Column('import_options', sa.JSON(), nullable=True),
        sa.Column('status', sa.Enum('PENDING', 'ANALYZING', 'READY', 'IMPORTING', 'COMPLETED', 'FAILED', name='import_status'), nullable=False),
        sa.Column('imported_row_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('failed_row_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('duplicate_row_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('import_errors', sa.JSON(), nullable=False),
        sa.Column('import_warnings', sa.JSON(), nullable=False),
        sa.Column('failure_reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_import_sessions_user_id', 'import_sessions', ['user_id'])
    op.create_index('ix_import_sessions_status', 'import_sessions', ['status'])
    op.create_index('ix_import_sessions_user_created', 'import_sessions', ['user_id', 'created_at'])

    op.create_table(
        'transactions',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('user_id', sa.UUID(), nullable=False),
        sa.Column('account_id', sa.UUID(), nullable=False),
        sa.Column('to_account_id', sa.UUID(), nullable=True),
        sa.Column('payee_id', sa.UUID(), nullable=True),
        sa.Column('category_id', sa.UUID(), nullable=True),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('transaction_type', sa.Enum('DEPOSIT', 'WITHDRAWAL', 'TRANSFER', name='transaction_type'), nullable=False),
        sa.Column('amount', sa.BigInteger(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('import_session_id', sa.UUID(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['to_account_id'], ['accounts.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['payee_id'], ['payees.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['category_id'], ['categories.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['import_session_id'], ['import_sessions.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_transactions_user_id', 'transactions', ['user_id'])
    op.create_index('ix_transactions_account_id', 'transactions', ['account_id'])
    op.create_index('ix_transactions_category_id', 'transactions', ['category_id'])
    op.create_index('ix_transactions_date', 'transactions', ['date'])
    op.create_index('ix_transactions_import_session_id', 'transactions', ['import_session_id'])
    op.create_index('ix_transactions_user_date', 'transactions', ['user_id', 'date'])


def downgrade() -> None:
    op.drop_table('transactions')
    op.drop_table('import_sessions')
    op.drop_table('payees')
    op.drop_table('categories')
    op.drop_table('accounts')
    op.drop_table('users')
    op.execute('DROP TYPE IF EXISTS transaction_type')
    op.execute('DROP TYPE IF EXISTS import_status')
    op.execute('DROP TYPE IF EXISTS category_type')
    op.execute('DROP TYPE IF EXISTS account_type')
