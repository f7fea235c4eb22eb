"""Initial schema: users, groups, trips, activities, polls and votes

Revision ID: 001
Revises:
Create Date: 2025-05-01 00:00:00.000000

Users, groups and group members are written by the identity and groups
services; the remaining tables belong to the poll and scheduling engine.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

TIME_SLOTS = ('morning', 'lunch', 'afternoon', 'dinner', 'evening', 'late_night')


def _timestamps() -> list:
    return [
        sa.Column('created', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now(), onupdate=sa.func.now()),
    ]


def upgrade() -> None:
    timeslot = sa.Enum(*TIME_SLOTS, name='timeslot', create_constraint=True)

    op.create_table(
        'users',
        sa.Column('id', sa.String(15), primary_key=True),
        sa.Column('email', sa.String(255), unique=True, nullable=False, index=True),
        sa.Column('username', sa.String(100), nullable=False),
        sa.Column('display_name', sa.String(200), nullable=True),
        sa.Column('avatar_url', sa.String(500), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        'groups',
        sa.Column('id', sa.String(15), primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('cover_photo_url', sa.String(500), nullable=True),
        sa.Column('created_by_id', sa.String(15), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        'group_members',
        sa.Column('id', sa.String(15), primary_key=True),
        sa.Column('group_id', sa.String(15), sa.ForeignKey('groups.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('user_id', sa.String(15), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('role', sa.Enum('leader', 'member', name='groupmemberrole', create_constraint=True), nullable=False, server_default='member'),
        sa.Column('status', sa.Enum('pending', 'active', name='groupmemberstatus', create_constraint=True), nullable=False, server_default='pending', index=True),
        sa.Column('joined_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('group_id', 'user_id', name='uq_group_members_group_user'),
    )

    op.create_table(
        'trips',
        sa.Column('id', sa.String(15), primary_key=True),
        sa.Column('group_id', sa.String(15), sa.ForeignKey('groups.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('status', sa.Enum('planning', 'confirmed', 'completed', 'cancelled', name='tripstatus', create_constraint=True), nullable=False, server_default='planning'),
        sa.Column('planning_range_start', sa.Date(), nullable=True),
        sa.Column('planning_range_end', sa.Date(), nullable=True),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        'activities',
        sa.Column('id', sa.String(15), primary_key=True),
        sa.Column('trip_id', sa.String(15), sa.ForeignKey('trips.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('status', sa.Enum('idea', 'scheduled', 'completed', 'cancelled', name='activitystatus', create_constraint=True), nullable=False, server_default='idea', index=True),
        sa.Column('category', sa.Enum('flight', 'hotel', 'food', 'attraction', 'transport', 'other', name='activitycategory', create_constraint=True), nullable=True),
        sa.Column('date', sa.Date(), nullable=True, index=True),
        sa.Column('start_time', sa.Time(), nullable=True),
        sa.Column('end_time', sa.Time(), nullable=True),
        sa.Column('schedule_day_index', sa.Integer(), nullable=True),
        sa.Column('schedule_slot', timeslot, nullable=True),
        sa.Column('location_name', sa.String(300), nullable=True),
        sa.Column('link_url', sa.String(500), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_by_id', sa.String(15), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('trip_id', 'date', 'schedule_day_index', name='uq_activities_trip_date_day_index'),
    )

    op.create_table(
        'polls',
        sa.Column('id', sa.String(15), primary_key=True),
        sa.Column('trip_id', sa.String(15), sa.ForeignKey('trips.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('activity_id', sa.String(15), sa.ForeignKey('activities.id', ondelete='CASCADE'), nullable=True, index=True),
        sa.Column('poll_type', sa.Enum('ordinary', 'date', name='polltype', create_constraint=True), nullable=False, server_default='ordinary'),
        sa.Column('title', sa.String(300), nullable=False),
        sa.Column('status', sa.Enum('open', 'closed', 'finalized', name='pollstatus', create_constraint=True), nullable=False, server_default='open', index=True),
        sa.Column('closed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('finalized_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('finalized_option_id', sa.String(15), nullable=True),
        sa.Column('created_by_id', sa.String(15), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('updated_by_id', sa.String(15), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        'poll_options',
        sa.Column('id', sa.String(15), primary_key=True),
        sa.Column('poll_id', sa.String(15), sa.ForeignKey('polls.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('index', sa.Integer(), nullable=True),
        sa.Column('text_value', sa.String(500), nullable=True),
        sa.Column('media_url', sa.String(500), nullable=True),
        sa.Column('metadata', sa.Text(), nullable=True),
        sa.Column('date_start', sa.DateTime(timezone=True), nullable=True),
        sa.Column('date_end', sa.DateTime(timezone=True), nullable=True),
        # The timeslot type already exists once activities is created
        sa.Column('time_of_day', postgresql.ENUM(*TIME_SLOTS, name='timeslot', create_type=False), nullable=True),
        sa.Column('created_by_id', sa.String(15), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        'votes',
        sa.Column('id', sa.String(15), primary_key=True),
        sa.Column('poll_option_id', sa.String(15), sa.ForeignKey('poll_options.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('poll_id', sa.String(15), sa.ForeignKey('polls.id', ondelete='CASCADE'), nullable=False, index=True),
        # poll_id for ordinary polls, NULL for date polls
        sa.Column('exclusive_poll_id', sa.String(15), nullable=True),
        sa.Column('user_id', sa.String(15), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True),
        *_timestamps(),
        sa.UniqueConstraint('poll_option_id', 'user_id', name='uq_votes_option_user'),
        sa.UniqueConstraint('exclusive_poll_id', 'user_id', name='uq_votes_exclusive_poll_user'),
    )


def downgrade() -> None:
    op.drop_table('votes')
    op.drop_table('poll_options')
    op.drop_table('polls')
    op.drop_table('activities')
    op.drop_table('trips')
    op.drop_table('group_members')
    op.drop_table('groups')
    op.drop_table('users')
    # Drop enum types
    for enum_name in ('timeslot', 'polltype', 'pollstatus', 'activitystatus',
                      'activitycategory', 'tripstatus', 'groupmemberrole', 'groupmemberstatus'):
        op.execute(f'DROP TYPE IF EXISTS {enum_name}')
