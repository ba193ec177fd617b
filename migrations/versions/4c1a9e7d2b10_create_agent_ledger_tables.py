"""Create agent ledger tables"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c1a9e7d2b10'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=80), nullable=False),
        sa.Column('nickname', sa.String(length=80), nullable=True),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('parent_id', sa.Integer(), nullable=True),
        sa.Column('agent_level', sa.Integer(), nullable=False),
        sa.Column('balance', sa.Numeric(precision=18, scale=2), server_default=sa.text('0.00'), nullable=False),
        sa.Column('share_percent', sa.Numeric(precision=5, scale=2), server_default=sa.text('0.00'), nullable=False),
        sa.Column('rebate_percent', sa.Numeric(precision=5, scale=2), server_default=sa.text('0.00'), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('is_locked', sa.Boolean(), nullable=False),
        sa.Column('is_full_disabled', sa.Boolean(), nullable=False),
        sa.Column('is_readonly', sa.Boolean(), nullable=False),
        sa.Column('invite_code', sa.String(length=20), nullable=False),
        sa.Column('last_login_at', sa.DateTime(), nullable=True),
        sa.Column('last_login_ip', sa.String(length=45), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint('balance >= 0', name='chk_user_balance_non_negative'),
        sa.CheckConstraint('agent_level >= 1 AND agent_level <= 5', name='chk_user_agent_level'),
        sa.CheckConstraint('share_percent >= 0 AND share_percent <= 100', name='chk_user_share_range'),
        sa.CheckConstraint('rebate_percent >= 0 AND rebate_percent <= 100', name='chk_user_rebate_range'),
        sa.ForeignKeyConstraint(['parent_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('username'),
        sa.UniqueConstraint('invite_code'),
    )
    with op.batch_alter_table('users', schema=None) as batch_op:
        batch_op.create_index('idx_user_parent_role', ['parent_id', 'role'], unique=False)
        batch_op.create_index(batch_op.f('ix_users_parent_id'), ['parent_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_users_role'), ['role'], unique=False)
        batch_op.create_index(batch_op.f('ix_users_created_at'), ['created_at'], unique=False)

    op.create_table(
        'transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('operator_id', sa.Integer(), nullable=True),
        sa.Column('type', sa.String(length=20), nullable=False),
        sa.Column('amount', sa.Numeric(precision=18, scale=2), nullable=False),
        sa.Column('balance_before', sa.Numeric(precision=18, scale=2), nullable=False),
        sa.Column('balance_after', sa.Numeric(precision=18, scale=2), nullable=False),
        sa.Column('note', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['operator_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('transactions', schema=None) as batch_op:
        batch_op.create_index('idx_transaction_user_created', ['user_id', 'created_at'], unique=False)
        batch_op.create_index(batch_op.f('ix_transactions_user_id'), ['user_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_transactions_operator_id'), ['operator_id'], unique=False)

    op.create_table(
        'bets',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Numeric(precision=18, scale=2), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('payout', sa.Numeric(precision=18, scale=2), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('bets', schema=None) as batch_op:
        batch_op.create_index('idx_bet_user_created', ['user_id', 'created_at'], unique=False)

    op.create_table(
        'agent_share_settings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('agent_id', sa.Integer(), nullable=False),
        sa.Column('game_category', sa.String(length=50), nullable=False),
        sa.Column('platform', sa.String(length=50), nullable=False),
        sa.Column('share_percent', sa.Numeric(precision=5, scale=2), nullable=False),
        sa.Column('rebate_percent', sa.Numeric(precision=5, scale=2), nullable=False),
        sa.Column('enabled', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['agent_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('agent_id', 'game_category', 'platform', name='uq_share_setting_scope'),
    )
    with op.batch_alter_table('agent_share_settings', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_agent_share_settings_agent_id'), ['agent_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_agent_share_settings_created_at'), ['created_at'], unique=False)

    op.create_table(
        'share_setting_history',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('agent_id', sa.Integer(), nullable=False),
        sa.Column('operator_id', sa.Integer(), nullable=False),
        sa.Column('change_type', sa.String(length=20), nullable=False),
        sa.Column('old_value', sa.Numeric(precision=5, scale=2), nullable=False),
        sa.Column('new_value', sa.Numeric(precision=5, scale=2), nullable=False),
        sa.Column('game_category', sa.String(length=50), nullable=True),
        sa.Column('platform', sa.String(length=50), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['agent_id'], ['users.id']),
        sa.ForeignKeyConstraint(['operator_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('share_setting_history', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_share_setting_history_agent_id'), ['agent_id'], unique=False)

    op.create_table(
        'operation_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('operator_id', sa.Integer(), nullable=False),
        sa.Column('action', sa.String(length=50), nullable=False),
        sa.Column('target_type', sa.String(length=20), nullable=False),
        sa.Column('target_id', sa.Integer(), nullable=True),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['operator_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('operation_logs', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_operation_logs_operator_id'), ['operator_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_operation_logs_target_id'), ['target_id'], unique=False)


def downgrade():
    op.drop_table('operation_logs')
    op.drop_table('share_setting_history')
    op.drop_table('agent_share_settings')
    op.drop_table('bets')
    op.drop_table('transactions')
    op.drop_table('users')
