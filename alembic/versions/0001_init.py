from alembic import op
import sqlalchemy as sa

revision = '0001_init'
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table('members',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('profile_photo_url', sa.String(512)),
        sa.Column('strava_athlete_id', sa.BigInteger, nullable=False, unique=True),
        sa.Column('strava_access_token', sa.Text),
        sa.Column('strava_refresh_token', sa.Text),
        sa.Column('token_expires_at', sa.DateTime(timezone=True)),
        sa.Column('joined_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table('webhook_queue',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('strava_activity_id', sa.BigInteger, nullable=False),
        sa.Column('strava_athlete_id', sa.BigInteger, nullable=False),
        sa.Column('event_type', sa.String(32), nullable=False),
        sa.Column('status', sa.String(16), nullable=False, server_default='pending'),
        sa.Column('attempts', sa.Integer, nullable=False, server_default='0'),
        sa.Column('max_attempts', sa.Integer, nullable=False, server_default='3'),
        sa.Column('error_message', sa.Text),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('started_at', sa.DateTime(timezone=True)),
        sa.Column('processed_at', sa.DateTime(timezone=True)),
        sa.UniqueConstraint('strava_activity_id', name='uq_webhook_queue_activity'),
        sa.CheckConstraint("status IN ('pending', 'processing', 'completed', 'failed')", name='ck_webhook_queue_status'),
    )
    op.create_index('idx_webhook_queue_status_created', 'webhook_queue', ['status', 'created_at'])

    op.create_table('achievements',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('member_id', sa.Integer, sa.ForeignKey('members.id'), nullable=False),
        sa.Column('milestone', sa.String(16), nullable=False),
        sa.Column('season', sa.Integer, nullable=False),
        sa.Column('strava_activity_id', sa.BigInteger, nullable=False),
        sa.Column('achieved_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('time_seconds', sa.Integer, nullable=False),
        sa.Column('distance', sa.Float, nullable=False),
        sa.Column('previous_time_seconds', sa.Integer),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_achievements_member_id', 'achievements', ['member_id'])
    op.create_index('idx_achievements_member_season', 'achievements', ['member_id', 'season'])

    op.create_table('processed_activities',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('member_id', sa.Integer, sa.ForeignKey('members.id'), nullable=False),
        sa.Column('strava_activity_id', sa.BigInteger, nullable=False),
        sa.Column('activity_name', sa.String(255), nullable=False),
        sa.Column('activity_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('distance_meters', sa.Float, nullable=False),
        sa.Column('moving_time_seconds', sa.Integer, nullable=False),
        sa.Column('pace_seconds_per_km', sa.Integer, nullable=False),
        sa.Column('milestones_unlocked', sa.String(64)),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('strava_activity_id', name='uq_processed_activity'),
    )
    op.create_index('ix_processed_activities_member_id', 'processed_activities', ['member_id'])

def downgrade():
    op.drop_index('ix_processed_activities_member_id', table_name='processed_activities')
    op.drop_table('processed_activities')
    op.drop_index('idx_achievements_member_season', table_name='achievements')
    op.drop_index('ix_achievements_member_id', table_name='achievements')
    op.drop_table('achievements')
    op.drop_index('idx_webhook_queue_status_created', table_name='webhook_queue')
    op.drop_table('webhook_queue')
    op.drop_table('members')
