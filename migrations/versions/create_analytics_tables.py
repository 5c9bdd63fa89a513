"""Create analytics tables

Revision ID: create_analytics_tables
Revises:
Create Date: 2026-01-12 10:00:00.000000

Adds sessions, page_views, click_events and cta_clicks. Child rows are
deleted with their session (ON DELETE CASCADE), which the reset relies on.
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = 'create_analytics_tables'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """
    Create the session table and its three child event tables.
    """
    op.create_table(
        'sessions',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('visitor_id', sa.String(length=100), nullable=False),
        sa.Column('started_at', sa.DateTime(), nullable=False),
        sa.Column('ended_at', sa.DateTime(), nullable=True),
        sa.Column('device_type', sa.String(length=20), nullable=True),
        sa.Column('user_agent', sa.String(length=500), nullable=True),
        sa.Column('referrer', sa.String(length=1000), nullable=True),
        sa.Column('entry_slide', sa.String(length=50), nullable=True),
        sa.Column('exit_slide', sa.String(length=50), nullable=True),
        sa.Column('total_slides_viewed', sa.Integer(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_sessions_visitor_id', 'sessions', ['visitor_id'])
    op.create_index('ix_sessions_started_at', 'sessions', ['started_at'])
    op.create_index('ix_sessions_visitor_started', 'sessions', ['visitor_id', 'started_at'])

    op.create_table(
        'page_views',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('session_id', sa.String(length=36), nullable=False),
        sa.Column('slide_id', sa.String(length=50), nullable=False),
        sa.Column('slide_type', sa.String(length=20), nullable=False, server_default='vertical'),
        sa.Column('parent_slide_id', sa.String(length=50), nullable=True),
        sa.Column('viewed_at', sa.DateTime(), nullable=False),
        sa.Column('duration_ms', sa.Integer(), nullable=True),
        sa.Column('scroll_direction', sa.String(length=20), nullable=True),
        sa.ForeignKeyConstraint(['session_id'], ['sessions.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_page_views_session_id', 'page_views', ['session_id'])
    op.create_index('ix_page_views_slide_id', 'page_views', ['slide_id'])
    op.create_index('ix_page_views_viewed_at', 'page_views', ['viewed_at'])
    op.create_index('ix_page_views_session_viewed', 'page_views', ['session_id', 'viewed_at'])

    op.create_table(
        'click_events',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('session_id', sa.String(length=36), nullable=False),
        sa.Column('slide_id', sa.String(length=50), nullable=False),
        sa.Column('x_percent', sa.Float(), nullable=False),
        sa.Column('y_percent', sa.Float(), nullable=False),
        sa.Column('element_type', sa.String(length=20), nullable=True),
        sa.Column('element_text', sa.String(length=100), nullable=True),
        sa.Column('clicked_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['session_id'], ['sessions.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_click_events_session_id', 'click_events', ['session_id'])
    op.create_index('ix_click_events_slide_id', 'click_events', ['slide_id'])
    op.create_index('ix_click_events_clicked_at', 'click_events', ['clicked_at'])

    op.create_table(
        'cta_clicks',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('session_id', sa.String(length=36), nullable=False),
        sa.Column('slide_id', sa.String(length=50), nullable=False),
        sa.Column('cta_text', sa.String(length=200), nullable=False),
        sa.Column('cta_action', sa.String(length=100), nullable=False),
        sa.Column('cta_href', sa.String(length=1000), nullable=True),
        sa.Column('clicked_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['session_id'], ['sessions.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_cta_clicks_session_id', 'cta_clicks', ['session_id'])
    op.create_index('ix_cta_clicks_slide_id', 'cta_clicks', ['slide_id'])
    op.create_index('ix_cta_clicks_clicked_at', 'cta_clicks', ['clicked_at'])


def downgrade() -> None:
    """
    Drop the analytics tables, children first.
    """
    op.drop_index('ix_cta_clicks_clicked_at', table_name='cta_clicks')
    op.drop_index('ix_cta_clicks_slide_id', table_name='cta_clicks')
    op.drop_index('ix_cta_clicks_session_id', table_name='cta_clicks')
    op.drop_table('cta_clicks')

    op.drop_index('ix_click_events_clicked_at', table_name='click_events')
    op.drop_index('ix_click_events_slide_id', table_name='click_events')
    op.drop_index('ix_click_events_session_id', table_name='click_events')
    op.drop_table('click_events')

    op.drop_index('ix_page_views_session_viewed', table_name='page_views')
    op.drop_index('ix_page_views_viewed_at', table_name='page_views')
    op.drop_index('ix_page_views_slide_id', table_name='page_views')
    op.drop_index('ix_page_views_session_id', table_name='page_views')
    op.drop_table('page_views')

    op.drop_index('ix_sessions_visitor_started', table_name='sessions')
    op.drop_index('ix_sessions_started_at', table_name='sessions')
    op.drop_index('ix_sessions_visitor_id', table_name='sessions')
    op.drop_table('sessions')
