"""
Seed Data Script - Creates a sample workflow and directory users for testing
Run: python -m scripts.seed_data
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from procflow.domain.models import ActorContext, WorkflowDefinitionInput
from procflow.domain.errors import AlreadyExistsError
from procflow.repositories.mongo_client import get_collection, create_indexes, USERS
from procflow.repositories.workflow_repo import MongoWorkflowRepository
from procflow.services.workflow_service import WorkflowService


SEED_ACTOR = ActorContext(actor_id="seed-script", display_name="Seed Script", roles=["Admin"])

SAMPLE_USERS = [
    {"user_id": "alice", "display_name": "Alice Clerk", "roles": ["Clerk"], "active": True},
    {"user_id": "bob", "display_name": "Bob Manager", "roles": ["Manager"], "active": True},
    {"user_id": "carol", "display_name": "Carol Finance", "roles": ["Finance"], "active": True},
    {"user_id": "admin", "display_name": "Administrator", "roles": ["Admin"], "active": True},
]

PURCHASE_REQUEST = {
    "name": "Purchase Request",
    "description": "Manager approval for purchases, finance review above 1000",
    "category": "Procurement",
    "sla_minutes": 3 * 24 * 60,
    "fields": [
        {"key": "item", "field_type": "TEXT", "label": "Item"},
        {"key": "amount", "field_type": "NUMBER", "label": "Amount"},
        {"key": "justification", "field_type": "TEXT", "label": "Justification"},
        {"key": "finance_note", "field_type": "TEXT", "label": "Finance note"},
    ],
    "states": [
        {
            "name": "Draft",
            "label": "Draft",
            "is_initial": True,
            "assigned_roles": ["Clerk"],
            "required_fields": ["item"],
            "actions": [
                {
                    "name": "submit",
                    "label": "Submit for approval",
                    "target_state": "Review",
                    "allowed_roles": ["Clerk"],
                    "required_fields": ["amount", "justification"],
                }
            ],
        },
        {
            "name": "Review",
            "label": "Manager review",
            "assigned_roles": ["Manager"],
            "actions": [
                {
                    "name": "approve",
                    "label": "Approve",
                    "target_state": "Approved",
                    "allowed_roles": ["Manager"],
                    "condition": {
                        "logic": "AND",
                        "conditions": [{"field": "amount", "operator": "LESS_THAN", "value": 1000}],
                    },
                },
                {
                    "name": "escalate",
                    "label": "Send to finance",
                    "target_state": "FinanceReview",
                    "allowed_roles": ["Manager"],
                    "condition": {
                        "logic": "AND",
                        "conditions": [{"field": "amount", "operator": "GREATER_THAN", "value": 999}],
                    },
                },
                {
                    "name": "reject",
                    "label": "Reject",
                    "target_state": "Rejected",
                    "allowed_roles": ["Manager"],
                    "confirmation_required": True,
                },
            ],
        },
        {
            "name": "FinanceReview",
            "label": "Finance review",
            "assigned_roles": ["Finance"],
            "actions": [
                {
                    "name": "approve",
                    "label": "Approve",
                    "target_state": "Approved",
                    "allowed_roles": ["Finance"],
                    "required_fields": ["finance_note"],
                },
                {
                    "name": "reject",
                    "label": "Reject",
                    "target_state": "Rejected",
                    "allowed_roles": ["Finance"],
                },
            ],
        },
        {"name": "Approved", "label": "Approved", "is_final": True},
        {"name": "Rejected", "label": "Rejected", "is_final": True},
    ],
}


def seed_users():
    users = get_collection(USERS)
    for user in SAMPLE_USERS:
        users.update_one({"user_id": user["user_id"]}, {"$set": user}, upsert=True)
    print(f"Upserted {len(SAMPLE_USERS)} directory users")


def seed_workflows():
    service = WorkflowService(MongoWorkflowRepository())
    definition = WorkflowDefinitionInput.model_validate(PURCHASE_REQUEST)
    try:
        created = service.create_workflow(definition, SEED_ACTOR)
        print(f"Created workflow: {created.name} v{created.version}")
    except AlreadyExistsError:
        print(f"Workflow {definition.name} already exists. Skipping.")


def main():
    print("=== Seeding database ===")
    print("-" * 40)

    create_indexes()
    seed_users()
    seed_workflows()

    print("-" * 40)
    print("Done!")


if __name__ == "__main__":
    main()
