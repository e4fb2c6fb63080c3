"""Create jobs, candidates and applications tables

Revision ID: 001_create_application_tables
Revises: 
Create Date: 2026-10-16 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '001_create_application_tables'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create the application lifecycle tables."""
    op.create_table(
        'jobs',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('company_id', sa.Uuid(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='open'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_jobs_company_id', 'jobs', ['company_id'])
    op.create_index('idx_jobs_company_status', 'jobs', ['company_id', 'status'])

    op.create_table(
        'candidates',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('headline', sa.String(length=255), nullable=True),
        sa.Column('resume_url', sa.String(length=1024), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_candidates_user_id', 'candidates', ['user_id'], unique=True)

    op.create_table(
        'applications',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('job_id', sa.Uuid(), nullable=False),
        sa.Column('candidate_id', sa.Uuid(), nullable=False),
        sa.Column('company_id', sa.Uuid(), nullable=False),
        sa.Column('cover_letter', sa.Text(), nullable=True),
        sa.Column('cover_letter_url', sa.String(length=1024), nullable=True),
        sa.Column('resume_url', sa.String(length=1024), nullable=True),
        sa.Column('documents', sa.JSON(), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='submitted'),
        sa.Column('status_history', sa.JSON(), nullable=False),
        sa.Column('score', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('scoring_details', sa.JSON(), nullable=False),
        sa.Column('interviews', sa.JSON(), nullable=False),
        sa.Column('metadata', sa.JSON(), nullable=False),
        sa.Column('is_archived', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['job_id'], ['jobs.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['candidate_id'], ['candidates.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('job_id', 'candidate_id', name='uq_applications_job_candidate'),
    )
    op.create_index('ix_applications_candidate_id', 'applications', ['candidate_id'])
    op.create_index('idx_applications_company_created', 'applications', ['company_id', 'deleted_at', 'created_at'])
    op.create_index('idx_applications_company_status', 'applications', ['company_id', 'status'])
    op.create_index('idx_applications_company_score', 'applications', ['company_id', 'score'])
    op.create_index('idx_applications_job_created', 'applications', ['job_id', 'created_at'])


def downgrade() -> None:
    """Drop the application lifecycle tables."""
    op.drop_index('idx_applications_job_created', table_name='applications')
    op.drop_index('idx_applications_company_score', table_name='applications')
    op.drop_index('idx_applications_company_status', table_name='applications')
    op.drop_index('idx_applications_company_created', table_name='applications')
    op.drop_index('ix_applications_candidate_id', table_name='applications')
    op.drop_table('applications')
    op.drop_index('ix_candidates_user_id', table_name='candidates')
    op.drop_table('candidates')
    op.drop_index('idx_jobs_company_status', table_name='jobs')
    op.drop_index('ix_jobs_company_id', table_name='jobs')
    op.drop_table('jobs')
