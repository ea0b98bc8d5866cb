"""initial care schema

Revision ID: 0a1c2e3f4b5d
Revises:
Create Date: 2026-10-19 09:12:40.118204

"""

from alembic import op
import sqlalchemy as sa

revision = "0a1c2e3f4b5d"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    # People and care home assignments
    op.create_table(
        "profiles",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("first_name", sa.String(length=80), nullable=True),
        sa.Column("last_name", sa.String(length=80), nullable=True),
        sa.Column("phone", sa.String(length=40), nullable=True),
        sa.Column("avatar_url", sa.String(length=512), nullable=True),
        sa.Column(
            "role",
            sa.Enum("carer", "manager", "business_owner", name="userrole"),
            nullable=False,
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_profiles_role", "profiles", ["role"])
    op.create_index("ix_profiles_email", "profiles", ["email"])

    op.create_table(
        "care_homes",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("postcode", sa.String(length=16), nullable=True),
        sa.Column("phone", sa.String(length=40), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column(
            "care_home_type",
            sa.Enum(
                "residential",
                "nursing",
                "dementia",
                "learning_disabilities",
                "mental_health",
                name="carehometype",
            ),
            nullable=False,
        ),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("current_occupancy", sa.Integer(), nullable=False),
        sa.Column("cqc_rating", sa.String(length=40), nullable=True),
        sa.Column("cqc_registration_number", sa.String(length=40), nullable=True),
        sa.Column("manager_id", sa.UUID(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["manager_id"], ["profiles.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_care_homes_name", "care_homes", ["name"])

    op.create_table(
        "manager_care_homes",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("manager_id", sa.UUID(), nullable=False),
        sa.Column("care_home_id", sa.UUID(), nullable=False),
        sa.Column("assigned_by", sa.UUID(), nullable=True),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["manager_id"], ["profiles.id"]),
        sa.ForeignKeyConstraint(["care_home_id"], ["care_homes.id"]),
        sa.ForeignKeyConstraint(["assigned_by"], ["profiles.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "manager_id", "care_home_id", name="uq_manager_care_homes_pair"
        ),
    )
    op.create_index(
        "ix_manager_care_homes_manager_id", "manager_care_homes", ["manager_id"]
    )
    op.create_index(
        "ix_manager_care_homes_care_home_id", "manager_care_homes", ["care_home_id"]
    )

    # Residents and shift handovers
    op.create_table(
        "clients",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("care_home_id", sa.UUID(), nullable=False),
        sa.Column("nhs_number", sa.String(length=20), nullable=True),
        sa.Column("first_name", sa.String(length=80), nullable=False),
        sa.Column("last_name", sa.String(length=80), nullable=False),
        sa.Column("date_of_birth", sa.Date(), nullable=False),
        sa.Column(
            "gender",
            sa.Enum("male", "female", "other", "prefer_not_to_say", name="gender"),
            nullable=True,
        ),
        sa.Column(
            "client_type", sa.Enum("adult", "child", name="clienttype"), nullable=False
        ),
        sa.Column("room_number", sa.String(length=20), nullable=True),
        sa.Column("admission_date", sa.Date(), nullable=True),
        sa.Column("discharge_date", sa.Date(), nullable=True),
        sa.Column("emergency_contact_name", sa.String(length=160), nullable=True),
        sa.Column("emergency_contact_phone", sa.String(length=40), nullable=True),
        sa.Column(
            "emergency_contact_relationship", sa.String(length=80), nullable=True
        ),
        sa.Column("gp_name", sa.String(length=160), nullable=True),
        sa.Column("gp_practice", sa.String(length=160), nullable=True),
        sa.Column("gp_phone", sa.String(length=40), nullable=True),
        sa.Column("dietary_requirements", sa.Text(), nullable=True),
        sa.Column("allergies", sa.Text(), nullable=True),
        sa.Column("medical_conditions", sa.Text(), nullable=True),
        sa.Column("medications", sa.Text(), nullable=True),
        sa.Column("mobility_needs", sa.Text(), nullable=True),
        sa.Column("communication_needs", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["care_home_id"], ["care_homes.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_clients_care_home_id", "clients", ["care_home_id"])
    op.create_index("ix_clients_last_name", "clients", ["last_name"])

    op.create_table(
        "handovers",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("care_home_id", sa.UUID(), nullable=False),
        sa.Column("shift_date", sa.Date(), nullable=False),
        sa.Column(
            "shift_type",
            sa.Enum("day", "evening", "night", name="shifttype"),
            nullable=False,
        ),
        sa.Column("handover_from", sa.UUID(), nullable=False),
        sa.Column("handover_to", sa.UUID(), nullable=True),
        sa.Column("general_notes", sa.Text(), nullable=True),
        sa.Column("key_points", sa.Text(), nullable=True),
        sa.Column("follow_up_actions", sa.Text(), nullable=True),
        sa.Column("is_completed", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["care_home_id"], ["care_homes.id"]),
        sa.ForeignKeyConstraint(["handover_from"], ["profiles.id"]),
        sa.ForeignKeyConstraint(["handover_to"], ["profiles.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_handovers_care_home_id", "handovers", ["care_home_id"])
    op.create_index("ix_handovers_shift_date", "handovers", ["shift_date"])

    # Care plans
    op.create_table(
        "care_plans",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("client_id", sa.UUID(), nullable=False),
        sa.Column("created_by", sa.UUID(), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("goals", sa.Text(), nullable=True),
        sa.Column("interventions", sa.Text(), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("review_date", sa.Date(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["client_id"], ["clients.id"]),
        sa.ForeignKeyConstraint(["created_by"], ["profiles.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_care_plans_client_id", "care_plans", ["client_id"])
    op.create_index("ix_care_plans_created_at", "care_plans", ["created_at"])

    op.create_table(
        "care_plan_versions",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("care_plan_id", sa.UUID(), nullable=False),
        sa.Column("version_number", sa.Integer(), nullable=False),
        sa.Column(
            "status",
            sa.Enum("draft", "active", "archived", name="careplanversionstatus"),
            nullable=False,
        ),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column("effective_from", sa.Date(), nullable=True),
        sa.Column("created_by", sa.UUID(), nullable=False),
        sa.Column("approved_by", sa.UUID(), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["care_plan_id"], ["care_plans.id"]),
        sa.ForeignKeyConstraint(["created_by"], ["profiles.id"]),
        sa.ForeignKeyConstraint(["approved_by"], ["profiles.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "care_plan_id", "version_number", name="uq_care_plan_versions_number"
        ),
    )
    op.create_index(
        "uq_care_plan_versions_one_active",
        "care_plan_versions",
        ["care_plan_id"],
        unique=True,
        postgresql_where=sa.text("is_active"),
    )

    op.create_table(
        "care_plan_tasks",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("care_plan_version_id", sa.UUID(), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "priority",
            sa.Enum("low", "medium", "high", "urgent", name="priority"),
            nullable=True,
        ),
        sa.Column(
            "status",
            sa.Enum(
                "pending",
                "in_progress",
                "completed",
                "cancelled",
                name="careplantaskstatus",
            ),
            nullable=False,
        ),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("assigned_to", sa.UUID(), nullable=True),
        sa.Column("created_by", sa.UUID(), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["care_plan_version_id"], ["care_plan_versions.id"]),
        sa.ForeignKeyConstraint(["assigned_to"], ["profiles.id"]),
        sa.ForeignKeyConstraint(["created_by"], ["profiles.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_care_plan_tasks_version_id", "care_plan_tasks", ["care_plan_version_id"]
    )
    op.create_index(
        "ix_care_plan_tasks_assigned_to", "care_plan_tasks", ["assigned_to"]
    )

    op.create_table(
        "care_plan_reviews",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("care_plan_id", sa.UUID(), nullable=False),
        sa.Column("scheduled_for", sa.Date(), nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                "scheduled",
                "in_progress",
                "completed",
                "overdue",
                "cancelled",
                name="careplanreviewstatus",
            ),
            nullable=False,
        ),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by", sa.UUID(), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["care_plan_id"], ["care_plans.id"]),
        sa.ForeignKeyConstraint(["created_by"], ["profiles.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_care_plan_reviews_care_plan_id", "care_plan_reviews", ["care_plan_id"]
    )
    op.create_index(
        "ix_care_plan_reviews_scheduled_for", "care_plan_reviews", ["scheduled_for"]
    )

    # Incidents
    op.create_table(
        "incidents",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("care_home_id", sa.UUID(), nullable=False),
        sa.Column("client_id", sa.UUID(), nullable=True),
        sa.Column("reported_by", sa.UUID(), nullable=False),
        sa.Column("incident_type", sa.String(length=80), nullable=False),
        sa.Column(
            "severity",
            sa.Enum("low", "medium", "high", "critical", name="incidentseverity"),
            nullable=False,
        ),
        sa.Column(
            "status",
            sa.Enum(
                "open", "investigating", "resolved", "closed", name="incidentstatus"
            ),
            nullable=False,
        ),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("location", sa.String(length=255), nullable=True),
        sa.Column("incident_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("injuries_sustained", sa.Text(), nullable=True),
        sa.Column("witnesses", sa.Text(), nullable=True),
        sa.Column("immediate_action_taken", sa.Text(), nullable=True),
        sa.Column("investigation_notes", sa.Text(), nullable=True),
        sa.Column("preventive_measures", sa.Text(), nullable=True),
        sa.Column("follow_up_required", sa.Boolean(), nullable=False),
        sa.Column("follow_up_notes", sa.Text(), nullable=True),
        sa.Column("resolved_date", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["care_home_id"], ["care_homes.id"]),
        sa.ForeignKeyConstraint(["client_id"], ["clients.id"]),
        sa.ForeignKeyConstraint(["reported_by"], ["profiles.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_incidents_care_home_id", "incidents", ["care_home_id"])
    op.create_index("ix_incidents_incident_date", "incidents", ["incident_date"])
    op.create_index("ix_incidents_status", "incidents", ["status"])

    op.create_table(
        "incident_actions",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("incident_id", sa.UUID(), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "status",
            sa.Enum(
                "pending",
                "in_progress",
                "completed",
                "overdue",
                "cancelled",
                name="incidentactionstatus",
            ),
            nullable=False,
        ),
        sa.Column("assigned_to", sa.UUID(), nullable=True),
        sa.Column("due_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by", sa.UUID(), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["incident_id"], ["incidents.id"]),
        sa.ForeignKeyConstraint(["assigned_to"], ["profiles.id"]),
        sa.ForeignKeyConstraint(["created_by"], ["profiles.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_incident_actions_incident_id", "incident_actions", ["incident_id"]
    )

    op.create_table(
        "incident_followups",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("incident_id", sa.UUID(), nullable=False),
        sa.Column("note", sa.Text(), nullable=False),
        sa.Column("recorded_by", sa.UUID(), nullable=False),
        sa.Column("recorded_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("next_review_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["incident_id"], ["incidents.id"]),
        sa.ForeignKeyConstraint(["recorded_by"], ["profiles.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_incident_followups_incident_id", "incident_followups", ["incident_id"]
    )

    # Notification queue and audit trail
    op.create_table(
        "notification_queue",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("recipient_id", sa.UUID(), nullable=False),
        sa.Column(
            "channel",
            sa.Enum("in_app", "email", "sms", "webhook", name="notificationchannel"),
            nullable=False,
        ),
        sa.Column(
            "status",
            sa.Enum(
                "queued",
                "sending",
                "sent",
                "failed",
                "cancelled",
                name="notificationstatus",
            ),
            nullable=False,
        ),
        sa.Column("subject", sa.String(length=255), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("related_entity_type", sa.String(length=80), nullable=True),
        sa.Column("related_entity_id", sa.UUID(), nullable=True),
        sa.Column("send_after", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("created_by", sa.UUID(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["recipient_id"], ["profiles.id"]),
        sa.ForeignKeyConstraint(["created_by"], ["profiles.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_notification_queue_recipient_id", "notification_queue", ["recipient_id"]
    )
    op.create_index(
        "ix_notification_queue_status_channel",
        "notification_queue",
        ["status", "channel"],
    )
    op.create_index(
        "ix_notification_queue_created_at", "notification_queue", ["created_at"]
    )

    op.create_table(
        "audit_events",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("actor_id", sa.UUID(), nullable=True),
        sa.Column("care_home_id", sa.UUID(), nullable=True),
        sa.Column("entity_type", sa.String(length=80), nullable=False),
        sa.Column("entity_id", sa.UUID(), nullable=True),
        sa.Column("action", sa.String(length=80), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["actor_id"], ["profiles.id"]),
        sa.ForeignKeyConstraint(["care_home_id"], ["care_homes.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_audit_events_entity", "audit_events", ["entity_type", "entity_id"]
    )
    op.create_index("ix_audit_events_care_home_id", "audit_events", ["care_home_id"])
    op.create_index("ix_audit_events_created_at", "audit_events", ["created_at"])


def downgrade() -> None:
    op.drop_table("audit_events")
    op.drop_table("notification_queue")
    op.drop_table("incident_followups")
    op.drop_table("incident_actions")
    op.drop_table("incidents")
    op.drop_table("care_plan_reviews")
    op.drop_table("care_plan_tasks")
    op.drop_table("care_plan_versions")
    op.drop_table("care_plans")
    op.drop_table("handovers")
    op.drop_table("clients")
    op.drop_table("manager_care_homes")
    op.drop_table("care_homes")
    op.drop_table("profiles")

    bind = op.get_bind()
    for enum_name in (
        "notificationstatus",
        "notificationchannel",
        "incidentactionstatus",
        "incidentstatus",
        "incidentseverity",
        "careplanreviewstatus",
        "careplantaskstatus",
        "priority",
        "careplanversionstatus",
        "shifttype",
        "clienttype",
        "gender",
        "carehometype",
        "userrole",
    ):
        sa.Enum(name=enum_name).drop(bind, checkfirst=True)
