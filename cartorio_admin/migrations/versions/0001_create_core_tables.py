"""create catalog, cartorio and progress tables"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'cartorios',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('nome', sa.String(length=255), nullable=False),
        sa.Column('cidade', sa.String(length=128)),
        sa.Column('estado', sa.String(length=2)),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('observacoes', sa.Text()),
        sa.Column('data_cadastro', sa.DateTime(timezone=True)),
    )

    op.create_table(
        'cartorio_usuarios',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('cartorio_id', sa.String(length=36), sa.ForeignKey('cartorios.id'), nullable=False),
        sa.Column('username', sa.String(length=128), nullable=False),
        sa.Column('email', sa.String(length=255)),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True)),
    )
    op.create_index(op.f('ix_cartorio_usuarios_cartorio_id'), 'cartorio_usuarios', ['cartorio_id'], unique=False)

    op.create_table(
        'sistemas',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('nome', sa.String(length=255), nullable=False),
        sa.Column('descricao', sa.Text()),
        sa.Column('ordem', sa.Integer(), nullable=False, server_default='0'),
    )

    op.create_table(
        'produtos',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('sistema_id', sa.String(length=36), sa.ForeignKey('sistemas.id')),
        sa.Column('nome', sa.String(length=255), nullable=False),
        sa.Column('descricao', sa.Text()),
        sa.Column('ordem', sa.Integer(), nullable=False, server_default='0'),
    )
    op.create_index(op.f('ix_produtos_sistema_id'), 'produtos', ['sistema_id'], unique=False)

    op.create_table(
        'video_aulas',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('produto_id', sa.String(length=36), sa.ForeignKey('produtos.id')),
        sa.Column('titulo', sa.String(length=255), nullable=False),
        sa.Column('descricao', sa.Text()),
        sa.Column('ordem', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('url_video', sa.String(length=512)),
    )
    op.create_index(op.f('ix_video_aulas_produto_id'), 'video_aulas', ['produto_id'], unique=False)

    op.create_table(
        'cartorio_acesso_conteudo',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('cartorio_id', sa.String(length=36), sa.ForeignKey('cartorios.id'), nullable=False),
        sa.Column('sistema_id', sa.String(length=36)),
        sa.Column('produto_id', sa.String(length=36)),
        sa.Column('ativo', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('data_liberacao', sa.DateTime(timezone=True)),
    )
    op.create_index(op.f('ix_cartorio_acesso_conteudo_cartorio_id'), 'cartorio_acesso_conteudo', ['cartorio_id'], unique=False)
    op.create_index('ix_acesso_cartorio_ativo', 'cartorio_acesso_conteudo', ['cartorio_id', 'ativo'])

    op.create_table(
        'user_video_progress',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('video_aula_id', sa.String(length=36), nullable=False),
        sa.Column('completed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('completed_at', sa.DateTime(timezone=True)),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
        sa.UniqueConstraint('user_id', 'video_aula_id', name='uq_user_video_progress'),
    )
    op.create_index(op.f('ix_user_video_progress_user_id'), 'user_video_progress', ['user_id'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_user_video_progress_user_id'), table_name='user_video_progress')
    op.drop_table('user_video_progress')
    op.drop_index('ix_acesso_cartorio_ativo', table_name='cartorio_acesso_conteudo')
    op.drop_index(op.f('ix_cartorio_acesso_conteudo_cartorio_id'), table_name='cartorio_acesso_conteudo')
    op.drop_table('cartorio_acesso_conteudo')
    op.drop_index(op.f('ix_video_aulas_produto_id'), table_name='video_aulas')
    op.drop_table('video_aulas')
    op.drop_index(op.f('ix_produtos_sistema_id'), table_name='produtos')
    op.drop_table('produtos')
    op.drop_table('sistemas')
    op.drop_index(op.f('ix_cartorio_usuarios_cartorio_id'), table_name='cartorio_usuarios')
    op.drop_table('cartorio_usuarios')
    op.drop_table('cartorios')
