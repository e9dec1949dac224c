# Import all models here to ensure they are registered with SQLAlchemy
from helpdesk_rules.models.rule import AutomationRule
