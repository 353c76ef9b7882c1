"""Create country tariff catalog and shipment cost tables

Revision ID: c3d4e5f6a7b8
Revises:
Create Date: 2026-10-18

Creates:
- country_tariff_profiles, tariff_programs, hts_tariff_overrides (catalog,
  written by the registry sync job)
- shipment_records (raw import shipments)
- hts_cost_by_country (aggregated unit costs, upserted by scripts/aggregate_costs.py)

Active overrides are unique per (profile, override_type, match_type, hts_code);
two active rows at the same specificity are rejected at write time.
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'c3d4e5f6a7b8'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'country_tariff_profiles',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('country_code', sa.String(2), nullable=False),
        sa.Column('country_name', sa.String(128), nullable=False),
        sa.Column('region', sa.String(64), nullable=True),
        sa.Column('trade_status', sa.String(16), nullable=False, server_default='normal'),
        sa.Column('has_fta', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('fta_name', sa.String(128), nullable=True),
        sa.Column('fta_waives_base_duty', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('fta_waives_ieepa', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('ieepa_exempt', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('ieepa_baseline_rate', sa.Numeric(6, 2), nullable=False, server_default='0'),
        sa.Column('fentanyl_active', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('fentanyl_rate', sa.Numeric(6, 2), nullable=True),
        sa.Column('reciprocal_rate', sa.Numeric(6, 2), nullable=True),
        sa.Column('section_301_active', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('section_301_default_rate', sa.Numeric(6, 2), nullable=True),
        sa.Column('total_additional_rate', sa.Numeric(7, 2), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('last_verified', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_country_tariff_profiles_country_code', 'country_tariff_profiles',
                    ['country_code'], unique=True)

    op.create_table(
        'tariff_programs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('country_profile_id', sa.Integer(),
                  sa.ForeignKey('country_tariff_profiles.id'), nullable=False),
        sa.Column('program_type', sa.String(32), nullable=False),
        sa.Column('name', sa.String(256), nullable=False),
        sa.Column('rate', sa.Numeric(6, 2), nullable=False, server_default='0'),
        sa.Column('chapter_99_code', sa.String(16), nullable=True),
        sa.Column('legal_reference', sa.String(256), nullable=True),
        sa.Column('effective_date', sa.Date(), nullable=True),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_index('idx_tariff_program_profile_type', 'tariff_programs',
                    ['country_profile_id', 'program_type'])

    op.create_table(
        'hts_tariff_overrides',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('country_profile_id', sa.Integer(),
                  sa.ForeignKey('country_tariff_profiles.id'), nullable=False),
        sa.Column('override_type', sa.String(32), nullable=False),
        sa.Column('match_type', sa.String(16), nullable=False),
        sa.Column('hts_code', sa.String(10), nullable=False),
        sa.Column('rate', sa.Numeric(6, 2), nullable=False),
        sa.Column('list_name', sa.String(64), nullable=True),
        sa.Column('hts_description', sa.Text(), nullable=True),
        sa.Column('legal_reference', sa.String(256), nullable=True),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_index('idx_hts_override_lookup', 'hts_tariff_overrides',
                    ['country_profile_id', 'override_type', 'hts_code'])
    op.create_index(
        'uq_active_hts_override', 'hts_tariff_overrides',
        ['country_profile_id', 'override_type', 'match_type', 'hts_code'],
        unique=True,
        sqlite_where=sa.text('active = 1'),
        postgresql_where=sa.text('active'),
    )

    op.create_table(
        'shipment_records',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('shipper_country', sa.String(2), nullable=False),
        sa.Column('shipper_country_name', sa.String(128), nullable=True),
        sa.Column('hts_code', sa.String(16), nullable=False),
        sa.Column('product_description', sa.Text(), nullable=True),
        sa.Column('unit_value', sa.Float(), nullable=True),
        sa.Column('quantity', sa.Float(), nullable=True),
        sa.Column('declared_value', sa.Float(), nullable=True),
        sa.Column('arrival_date', sa.DateTime(), nullable=True),
        sa.Column('carrier', sa.String(128), nullable=True),
        sa.Column('port_of_lading', sa.String(128), nullable=True),
        sa.Column('port_of_unlading', sa.String(128), nullable=True),
        sa.Column('source', sa.String(64), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_shipment_records_shipper_country', 'shipment_records', ['shipper_country'])
    op.create_index('ix_shipment_records_hts_code', 'shipment_records', ['hts_code'])
    op.create_index('idx_shipment_hts_country', 'shipment_records', ['hts_code', 'shipper_country'])

    op.create_table(
        'hts_cost_by_country',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('hts_code', sa.String(6), nullable=False),
        sa.Column('country_code', sa.String(2), nullable=False),
        sa.Column('country_name', sa.String(128), nullable=False),
        sa.Column('avg_unit_value', sa.Float(), nullable=False),
        sa.Column('median_unit_value', sa.Float(), nullable=False),
        sa.Column('min_unit_value', sa.Float(), nullable=False),
        sa.Column('max_unit_value', sa.Float(), nullable=False),
        sa.Column('std_deviation', sa.Float(), nullable=False, server_default='0'),
        sa.Column('shipment_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_quantity', sa.Float(), nullable=False, server_default='0'),
        sa.Column('total_value', sa.Float(), nullable=False, server_default='0'),
        sa.Column('confidence_score', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('oldest_shipment', sa.DateTime(), nullable=True),
        sa.Column('newest_shipment', sa.DateTime(), nullable=True),
        sa.Column('last_calculated', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('hts_code', 'country_code', name='uq_hts_cost_country'),
    )
    op.create_index('ix_hts_cost_by_country_hts_code', 'hts_cost_by_country', ['hts_code'])
    op.create_index('ix_hts_cost_by_country_country_code', 'hts_cost_by_country', ['country_code'])


def downgrade():
    op.drop_table('hts_cost_by_country')
    op.drop_table('shipment_records')
    op.drop_index('uq_active_hts_override', table_name='hts_tariff_overrides')
    op.drop_table('hts_tariff_overrides')
    op.drop_table('tariff_programs')
    op.drop_table('country_tariff_profiles')
