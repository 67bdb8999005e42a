"""Standard objects, fields and relations shipped with every workspace."""

from __future__ import annotations

import uuid

from ..schema.enums import (
    DefaultFunction,
    FeatureFlagKey,
    FieldType,
    OnDeleteAction,
    RelationType,
    function_default,
)
from .definitions import FieldDefinition, ObjectDefinition, RelationDefinition, StandardSchema

__all__ = ["STANDARD_NAMESPACE", "standard_id", "STANDARD_OBJECTS", "STANDARD_RELATIONS", "STANDARD_SCHEMA"]

STANDARD_NAMESPACE = uuid.UUID("20202020-5d2f-4b1c-9a0e-000000000000")


def standard_id(key: str) -> uuid.UUID:
    """Stable identifier of a standard element, derived from its dotted key."""

    return uuid.uuid5(STANDARD_NAMESPACE, key)


def _field(object_name: str, name: str, field_type: FieldType, label: str, **kwargs) -> FieldDefinition:
    return FieldDefinition(
        standard_id=standard_id(f"{object_name}.{name}"),
        name=name,
        type=field_type,
        label=label,
        **kwargs,
    )


def _system_fields(object_name: str) -> tuple[FieldDefinition, ...]:
    now = function_default(DefaultFunction.NOW)
    return (
        _field(object_name, "id", FieldType.UUID, "Id", icon="Icon123", is_nullable=False,
               is_system=True, default_value=function_default(DefaultFunction.UUID)),
        _field(object_name, "createdAt", FieldType.DATE_TIME, "Creation date", icon="IconCalendar",
               is_nullable=False, is_system=True, default_value=now),
        _field(object_name, "updatedAt", FieldType.DATE_TIME, "Update date", icon="IconCalendar",
               is_nullable=False, is_system=True, default_value=now),
    )


def _object(name_singular: str, name_plural: str, label_singular: str, label_plural: str,
            *fields: FieldDefinition, **kwargs) -> ObjectDefinition:
    return ObjectDefinition(
        standard_id=standard_id(name_singular),
        name_singular=name_singular,
        name_plural=name_plural,
        label_singular=label_singular,
        label_plural=label_plural,
        fields=_system_fields(name_singular) + tuple(fields),
        **kwargs,
    )


WORKSPACE_MEMBER = _object(
    "workspaceMember", "workspaceMembers", "Workspace Member", "Workspace Members",
    _field("workspaceMember", "name", FieldType.FULL_NAME, "Name", icon="IconCircleUser",
           description="Workspace member name"),
    _field("workspaceMember", "userEmail", FieldType.EMAIL, "User Email", icon="IconMail"),
    _field("workspaceMember", "locale", FieldType.TEXT, "Language", icon="IconLanguage",
           is_nullable=False, default_value="en"),
    _field("workspaceMember", "authoredActivities", FieldType.RELATION, "Authored activities",
           icon="IconCheckbox"),
    _field("workspaceMember", "blocklist", FieldType.RELATION, "Blocklist", icon="IconForbid2",
           gate=FeatureFlagKey.IS_BLOCKLIST_ENABLED),
    description="A workspace member",
    icon="IconUserCircle",
    is_system=True,
)

COMPANY = _object(
    "company", "companies", "Company", "Companies",
    _field("company", "name", FieldType.TEXT, "Name", icon="IconBuildingSkyscraper",
           description="The company name"),
    _field("company", "domainName", FieldType.LINK, "Domain Name", icon="IconLink",
           description="The company website URL. We use this url to fetch the company icon"),
    _field("company", "employees", FieldType.NUMBER, "Employees", icon="IconUsers"),
    _field("company", "annualRecurringRevenue", FieldType.CURRENCY, "ARR", icon="IconMoneybag",
           description="Annual Recurring Revenue: The actual or estimated annual revenue of the company"),
    _field("company", "idealCustomerProfile", FieldType.BOOLEAN, "ICP", icon="IconTarget",
           is_nullable=False, default_value=False),
    _field("company", "position", FieldType.POSITION, "Position", icon="IconHierarchy2",
           is_system=True),
    _field("company", "people", FieldType.RELATION, "People", icon="IconUsers"),
    _field("company", "opportunities", FieldType.RELATION, "Opportunities", icon="IconTargetArrow"),
    description="A company",
    icon="IconBuildingSkyscraper",
)

PERSON = _object(
    "person", "people", "Person", "People",
    _field("person", "name", FieldType.FULL_NAME, "Name", icon="IconUser"),
    _field("person", "email", FieldType.EMAIL, "Email", icon="IconMail"),
    _field("person", "phone", FieldType.PHONE, "Phone", icon="IconPhone"),
    _field("person", "linkedinLink", FieldType.LINK, "Linkedin", icon="IconBrandLinkedin"),
    _field("person", "jobTitle", FieldType.TEXT, "Job Title", icon="IconBriefcase"),
    _field("person", "position", FieldType.POSITION, "Position", icon="IconHierarchy2",
           is_system=True),
    _field("person", "company", FieldType.RELATION, "Company", icon="IconBuildingSkyscraper"),
    _field("person", "pointOfContactForOpportunities", FieldType.RELATION,
           "POC for Opportunities", icon="IconTargetArrow"),
    description="A person",
    icon="IconUser",
)

OPPORTUNITY = _object(
    "opportunity", "opportunities", "Opportunity", "Opportunities",
    _field("opportunity", "name", FieldType.TEXT, "Name", icon="IconTargetArrow"),
    _field("opportunity", "amount", FieldType.CURRENCY, "Amount", icon="IconCurrencyDollar"),
    _field("opportunity", "closeDate", FieldType.DATE_TIME, "Close date", icon="IconCalendarEvent"),
    _field("opportunity", "stage", FieldType.SELECT, "Stage", icon="IconProgressCheck",
           is_nullable=False, default_value="NEW",
           options=(
               {"value": "NEW", "label": "New", "position": 0},
               {"value": "MEETING", "label": "Meeting", "position": 1},
               {"value": "PROPOSAL", "label": "Proposal", "position": 2},
               {"value": "CUSTOMER", "label": "Customer", "position": 3},
           )),
    _field("opportunity", "position", FieldType.POSITION, "Position", icon="IconHierarchy2",
           is_system=True),
    _field("opportunity", "company", FieldType.RELATION, "Company", icon="IconBuildingSkyscraper"),
    _field("opportunity", "pointOfContact", FieldType.RELATION, "Point of Contact", icon="IconUser"),
    description="An opportunity",
    icon="IconTargetArrow",
)

ACTIVITY = _object(
    "activity", "activities", "Activity", "Activities",
    _field("activity", "title", FieldType.TEXT, "Title", icon="IconNotes"),
    _field("activity", "body", FieldType.TEXT, "Body", icon="IconList"),
    _field("activity", "type", FieldType.TEXT, "Type", icon="IconCheckbox",
           is_nullable=False, default_value="Note"),
    _field("activity", "dueAt", FieldType.DATE_TIME, "Due Date", icon="IconCalendarEvent"),
    _field("activity", "completedAt", FieldType.DATE_TIME, "Completion Date", icon="IconCheck"),
    _field("activity", "author", FieldType.RELATION, "Author", icon="IconUserCircle"),
    description="An activity",
    icon="IconCheckbox",
)

BLOCKLIST = _object(
    "blocklist", "blocklists", "Blocklist", "Blocklists",
    _field("blocklist", "handle", FieldType.TEXT, "Handle", icon="IconAt"),
    _field("blocklist", "workspaceMember", FieldType.RELATION, "WorkspaceMember",
           icon="IconCircleUser"),
    description="Blocklist",
    icon="IconForbid2",
    is_system=True,
    gate=FeatureFlagKey.IS_BLOCKLIST_ENABLED,
)

CALENDAR_EVENT = _object(
    "calendarEvent", "calendarEvents", "Calendar event", "Calendar events",
    _field("calendarEvent", "title", FieldType.TEXT, "Title", icon="IconH1"),
    _field("calendarEvent", "isCanceled", FieldType.BOOLEAN, "Is canceled", icon="IconCalendarCancel",
           is_nullable=False, default_value=False),
    _field("calendarEvent", "startsAt", FieldType.DATE_TIME, "Start Date", icon="IconCalendarClock"),
    _field("calendarEvent", "endsAt", FieldType.DATE_TIME, "End Date", icon="IconCalendarClock"),
    _field("calendarEvent", "location", FieldType.TEXT, "Location", icon="IconMapPin"),
    _field("calendarEvent", "conferenceLink", FieldType.LINK, "Meet Link", icon="IconLink"),
    description="Calendar events",
    icon="IconCalendar",
    is_system=True,
    gate=FeatureFlagKey.IS_CALENDAR_ENABLED,
)


def _relation(from_object: str, from_field: str, to_object: str, to_field: str, **kwargs) -> RelationDefinition:
    return RelationDefinition(
        standard_id=standard_id(f"relation:{from_object}.{from_field}"),
        from_object=from_object,
        from_field=from_field,
        to_object=to_object,
        to_field=to_field,
        **kwargs,
    )


STANDARD_OBJECTS: tuple[ObjectDefinition, ...] = (
    WORKSPACE_MEMBER,
    COMPANY,
    PERSON,
    OPPORTUNITY,
    ACTIVITY,
    BLOCKLIST,
    CALENDAR_EVENT,
)

STANDARD_RELATIONS: tuple[RelationDefinition, ...] = (
    _relation("company", "people", "person", "company"),
    _relation("company", "opportunities", "opportunity", "company"),
    _relation("person", "pointOfContactForOpportunities", "opportunity", "pointOfContact"),
    _relation("workspaceMember", "authoredActivities", "activity", "author",
              on_delete=OnDeleteAction.CASCADE),
    _relation("workspaceMember", "blocklist", "blocklist", "workspaceMember",
              relation_type=RelationType.ONE_TO_MANY, on_delete=OnDeleteAction.CASCADE,
              gate=FeatureFlagKey.IS_BLOCKLIST_ENABLED),
)

STANDARD_SCHEMA = StandardSchema(STANDARD_OBJECTS, STANDARD_RELATIONS)
