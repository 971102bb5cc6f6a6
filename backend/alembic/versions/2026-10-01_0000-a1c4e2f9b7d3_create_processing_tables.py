"""create study materials, processing tasks and material embeddings

Revision ID: a1c4e2f9b7d3
Revises:
Create Date: 2026-10-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = 'a1c4e2f9b7d3'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """
    Creates:
    1. study_materials - uploaded materials and their processed results
    2. processing_tasks - one row per pipeline stage per material
    3. material_embeddings - embedded text chunks (pgvector)
    """
    op.execute('CREATE EXTENSION IF NOT EXISTS vector')

    # ================================
    # study_materials
    # ================================
    op.create_table(
        'study_materials',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False, comment='Auto-incrementing primary key'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, comment='Timestamp when record was created (UTC)'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, comment='Timestamp when record was last updated (UTC)'),
        sa.Column('user_id', sa.Integer(), nullable=False, comment='Owner of the material'),
        sa.Column('title', sa.String(length=255), nullable=False, comment='Display title'),
        sa.Column('material_type', sa.String(length=20), nullable=False, comment='pdf, image or text'),
        sa.Column('source_content', sa.Text(), nullable=True, comment='Raw upload: base64 for binary types, plain text otherwise'),
        sa.Column('status', sa.String(length=20), nullable=False, comment='processing, ready or error'),
        sa.Column('content', sa.Text(), nullable=True, comment='Extracted text'),
        sa.Column('topics', postgresql.JSONB(astext_type=sa.Text()), nullable=True, comment='Main topics from content analysis'),
        sa.Column('processed_content', postgresql.JSONB(astext_type=sa.Text()), nullable=True, comment='summary, key_points, difficulty_level, prerequisites, related_topics'),
        sa.Column('embeddings', postgresql.JSONB(astext_type=sa.Text()), nullable=True, comment='Flat concatenation of all chunk embedding vectors'),
        sa.Column('error_message', sa.Text(), nullable=True, comment='Message of the exception that stopped processing'),
        sa.Column('last_processed_at', sa.DateTime(timezone=True), nullable=True, comment='When the pipeline last finished (ready or error)'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_study_materials')),
    )
    op.create_index(op.f('ix_study_materials_user_id'), 'study_materials', ['user_id'])
    op.create_index(op.f('ix_study_materials_status'), 'study_materials', ['status'])

    # ================================
    # processing_tasks
    # ================================
    op.create_table(
        'processing_tasks',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False, comment='Auto-incrementing primary key'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, comment='Timestamp when record was created (UTC)'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, comment='Timestamp when record was last updated (UTC)'),
        sa.Column('material_id', sa.Integer(), nullable=False, comment='Foreign key to study_materials table'),
        sa.Column('task_type', sa.String(length=50), nullable=False, comment='text_extraction, content_analysis or embedding_generation'),
        sa.Column('status', sa.String(length=20), nullable=False, comment='pending, processing, completed or error'),
        sa.Column('progress', sa.Float(), nullable=False, comment='Fraction complete in [0, 1]'),
        sa.Column('result', postgresql.JSONB(astext_type=sa.Text()), nullable=True, comment='Stage output once completed'),
        sa.Column('error', sa.Text(), nullable=True, comment='Last error message (retry attempt or terminal failure)'),
        sa.Column('message', sa.String(length=500), nullable=True, comment='Latest progress message'),
        sa.ForeignKeyConstraint(['material_id'], ['study_materials.id'], name=op.f('fk_processing_tasks_material_id_study_materials'), ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_processing_tasks')),
        sa.UniqueConstraint('material_id', 'task_type', name='uq_processing_task_material_type'),
    )
    op.create_index(op.f('ix_processing_tasks_material_id'), 'processing_tasks', ['material_id'])
    op.create_index(op.f('ix_processing_tasks_status'), 'processing_tasks', ['status'])

    # ================================
    # material_embeddings
    # ================================
    op.create_table(
        'material_embeddings',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False, comment='Auto-incrementing primary key'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, comment='Timestamp when record was created (UTC)'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, comment='Timestamp when record was last updated (UTC)'),
        sa.Column('material_id', sa.Integer(), nullable=False, comment='Foreign key to study_materials table'),
        sa.Column('chunk_index', sa.Integer(), nullable=False, comment='Position of this chunk within the material (0-indexed)'),
        sa.Column('chunk_text', sa.Text(), nullable=False, comment='The chunk text that was embedded'),
        sa.ForeignKeyConstraint(['material_id'], ['study_materials.id'], name=op.f('fk_material_embeddings_material_id_study_materials'), ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_material_embeddings')),
        sa.UniqueConstraint('material_id', 'chunk_index', name='uq_material_embedding_chunk_index'),
    )
    # 384 dimensions for sentence-transformers/all-MiniLM-L6-v2
    op.execute('ALTER TABLE material_embeddings ADD COLUMN embedding vector(384) NOT NULL')
    op.create_index(op.f('ix_material_embeddings_material_id'), 'material_embeddings', ['material_id'])

    # HNSW index for cosine similarity search over chunks
    op.execute("""
        CREATE INDEX ix_material_embeddings_embedding_hnsw
        ON material_embeddings
        USING hnsw (embedding vector_cosine_ops)
        WITH (m = 16, ef_construction = 64)
    """)


def downgrade() -> None:
    op.execute('DROP INDEX IF EXISTS ix_material_embeddings_embedding_hnsw')
    op.drop_index(op.f('ix_material_embeddings_material_id'), table_name='material_embeddings')
    op.drop_table('material_embeddings')

    op.drop_index(op.f('ix_processing_tasks_status'), table_name='processing_tasks')
    op.drop_index(op.f('ix_processing_tasks_material_id'), table_name='processing_tasks')
    op.drop_table('processing_tasks')

    op.drop_index(op.f('ix_study_materials_status'), table_name='study_materials')
    op.drop_index(op.f('ix_study_materials_user_id'), table_name='study_materials')
    op.drop_table('study_materials')
