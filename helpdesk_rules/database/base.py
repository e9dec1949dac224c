# Import base classes
from helpdesk_rules.database.base_class import Base

# Import all models here so they are registered on Base.metadata
from helpdesk_rules.models.rule import AutomationRule
