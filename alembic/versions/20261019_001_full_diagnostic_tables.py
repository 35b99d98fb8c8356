"""Full diagnostic tables - v1.0

Revision ID: 001_full_diagnostic
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_full_diagnostic'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id_column() -> sa.Column:
    return sa.Column('id', sa.String(36), primary_key=True)


def _assessment_fk() -> sa.Column:
    return sa.Column(
        'assessment_id', sa.String(36),
        sa.ForeignKey('full_assessments.id'), nullable=False, index=True,
    )


def upgrade() -> None:
    """Create every table of the full diagnostic."""

    # ===== 1. ASSESSMENTS =====
    op.create_table(
        'full_assessments',
        _id_column(),
        sa.Column('company_id', sa.String(36), nullable=False, index=True),
        sa.Column('segment', sa.String(1), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('cycle_no', sa.Integer(), nullable=False),
        sa.Column('full_version', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('closed_at', sa.DateTime(timezone=True), nullable=True),
    )

    # ===== 2. ANSWERS =====
    op.create_table(
        'full_answers',
        _id_column(),
        sa.Column('assessment_id', sa.String(36), sa.ForeignKey('full_assessments.id'), nullable=False),
        sa.Column('process_key', sa.String(20), nullable=False),
        sa.Column('question_key', sa.String(50), nullable=False),
        sa.Column('answer_value', sa.Integer(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint(
            'assessment_id', 'process_key', 'question_key', name='uq_full_answers_question'
        ),
    )
    op.create_index('ix_full_answers_assessment', 'full_answers', ['assessment_id'])

    # ===== 3. PROCESS SCORES =====
    op.create_table(
        'full_process_scores',
        _id_column(),
        _assessment_fk(),
        sa.Column('process_key', sa.String(20), nullable=False),
        sa.Column('score_numeric', sa.Float(), nullable=False),
        sa.Column('band', sa.String(10), nullable=False),
        sa.Column('rule_used', sa.String(40), nullable=False),
        sa.Column('dimension_scores', sa.JSON(), nullable=False),
        sa.Column('support', sa.JSON(), nullable=False),
        sa.Column('computed_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('assessment_id', 'process_key', name='uq_full_process_scores'),
    )

    # ===== 4. FINDINGS =====
    op.create_table(
        'full_findings',
        _id_column(),
        _assessment_fk(),
        sa.Column('finding_type', sa.String(20), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('process_key', sa.String(20), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('trace', sa.JSON(), nullable=False),
        sa.Column('is_fallback', sa.Boolean(), nullable=False),
        sa.Column('gap_reason', sa.String(50), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint(
            'assessment_id', 'finding_type', 'position', name='uq_full_findings_slot'
        ),
    )

    # ===== 5. GAPS AND CAUSES =====
    op.create_table(
        'full_gap_instances',
        _id_column(),
        _assessment_fk(),
        sa.Column('gap_id', sa.String(50), nullable=False),
        sa.Column('process_key', sa.String(20), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('assessment_id', 'gap_id', name='uq_full_gap_instances'),
    )
    op.create_table(
        'full_cause_answers',
        _id_column(),
        _assessment_fk(),
        sa.Column('gap_id', sa.String(50), nullable=False),
        sa.Column('q_id', sa.String(50), nullable=False),
        sa.Column('answer', sa.String(30), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('assessment_id', 'gap_id', 'q_id', name='uq_full_cause_answers'),
    )
    op.create_table(
        'full_gap_causes',
        _id_column(),
        _assessment_fk(),
        sa.Column('gap_id', sa.String(50), nullable=False),
        sa.Column('cause_primary', sa.String(50), nullable=False),
        sa.Column('cause_secondary', sa.String(50), nullable=True),
        sa.Column('evidence', sa.JSON(), nullable=False),
        sa.Column('score', sa.JSON(), nullable=False),
        sa.Column('version', sa.String(40), nullable=False),
        sa.Column('classified_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('assessment_id', 'gap_id', name='uq_full_gap_causes'),
    )

    # ===== 6. PLAN =====
    op.create_table(
        'full_selected_actions',
        _id_column(),
        _assessment_fk(),
        sa.Column('action_key', sa.String(100), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('owner_name', sa.String(255), nullable=False),
        sa.Column('metric_text', sa.String(500), nullable=False),
        sa.Column('checkpoint_date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('dropped_reason', sa.Text(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('assessment_id', 'action_key', name='uq_full_selected_actions_key'),
        sa.UniqueConstraint('assessment_id', 'position', name='uq_full_selected_actions_position'),
    )
    op.create_table(
        'full_action_dod_confirmations',
        _id_column(),
        _assessment_fk(),
        sa.Column('action_key', sa.String(100), nullable=False),
        sa.Column('confirmed_items', sa.JSON(), nullable=False),
        sa.Column('confirmed_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('assessment_id', 'action_key', name='uq_full_action_dod'),
    )
    op.create_table(
        'full_action_evidence',
        _id_column(),
        _assessment_fk(),
        sa.Column('action_key', sa.String(100), nullable=False),
        sa.Column('evidence_text', sa.Text(), nullable=False),
        sa.Column('before_baseline', sa.Text(), nullable=False),
        sa.Column('after_result', sa.Text(), nullable=False),
        sa.Column('declared_gain', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('assessment_id', 'action_key', name='uq_full_action_evidence'),
    )
    op.create_table(
        'full_cycle_history',
        _id_column(),
        _assessment_fk(),
        sa.Column('cycle_no', sa.Integer(), nullable=False),
        sa.Column('action_key', sa.String(100), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('owner_name', sa.String(255), nullable=True),
        sa.Column('metric_text', sa.String(500), nullable=True),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('dropped_reason', sa.Text(), nullable=True),
        sa.Column('declared_gain', sa.Text(), nullable=True),
        sa.Column('evidence', sa.JSON(), nullable=True),
        sa.Column('archived_at', sa.DateTime(timezone=True), nullable=False),
    )

    # ===== 7. SNAPSHOTS AND AUDIT =====
    op.create_table(
        'full_diagnostic_snapshots',
        _id_column(),
        _assessment_fk(),
        sa.Column('company_id', sa.String(36), nullable=False, index=True),
        sa.Column('full_version', sa.Integer(), nullable=False),
        sa.Column('cycle_no', sa.Integer(), nullable=False),
        sa.Column('segment', sa.String(1), nullable=False),
        sa.Column('processes', sa.JSON(), nullable=False),
        sa.Column('raios_x', sa.JSON(), nullable=False),
        sa.Column('recommendations', sa.JSON(), nullable=False),
        sa.Column('plan', sa.JSON(), nullable=False),
        sa.Column('evidence_summary', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('closed_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('assessment_id', 'full_version', name='uq_full_snapshots_version'),
    )
    op.create_table(
        'full_audit_events',
        _id_column(),
        sa.Column('event', sa.String(60), nullable=False, index=True),
        sa.Column('kind', sa.String(20), nullable=False),
        sa.Column('assessment_id', sa.String(36), nullable=True, index=True),
        sa.Column('company_id', sa.String(36), nullable=True),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )


def downgrade() -> None:
    """Drop all tables in reverse dependency order."""
    op.drop_table('full_audit_events')
    op.drop_table('full_diagnostic_snapshots')
    op.drop_table('full_cycle_history')
    op.drop_table('full_action_evidence')
    op.drop_table('full_action_dod_confirmations')
    op.drop_table('full_selected_actions')
    op.drop_table('full_gap_causes')
    op.drop_table('full_cause_answers')
    op.drop_table('full_gap_instances')
    op.drop_table('full_findings')
    op.drop_table('full_process_scores')
    op.drop_index('ix_full_answers_assessment', table_name='full_answers')
    op.drop_table('full_answers')
    op.drop_table('full_assessments')
