from abc import ABC, abstractmethod
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk_rules.core.exceptions import DuplicateRuleName, RuleNotFound
from helpdesk_rules.models.rule import AutomationRule
from helpdesk_rules.schemas.rule import Rule, RuleBase, RuleCreate, RuleStats, RuleUpdate
from helpdesk_rules.services.rule_validation import normalize_rule, validate_rule
from helpdesk_rules.utils.logger import log_important, logger

MAX_NAME_LENGTH = 255


class RuleRepository(ABC):
    """Workspace-scoped rule storage. create/update reject rules that fail validation."""

    @abstractmethod
    async def list(self, workspace_id: int, enabled_only: bool = False, skip: int = 0, limit: Optional[int] = None) -> List[Rule]:
        ...

    @abstractmethod
    async def get(self, workspace_id: int, rule_id: int) -> Rule:
        ...

    @abstractmethod
    async def create(self, workspace_id: int, rule_in: RuleCreate, created_by: Optional[int] = None) -> Rule:
        ...

    @abstractmethod
    async def update(self, workspace_id: int, rule_id: int, rule_in: RuleUpdate) -> Rule:
        ...

    @abstractmethod
    async def toggle(self, workspace_id: int, rule_id: int, is_enabled: bool) -> Rule:
        ...

    @abstractmethod
    async def duplicate(self, workspace_id: int, rule_id: int) -> Rule:
        ...

    @abstractmethod
    async def delete(self, workspace_id: int, rule_id: int) -> None:
        ...

    @abstractmethod
    async def get_stats(self, workspace_id: int) -> RuleStats:
        ...


class SQLAlchemyRuleRepository(RuleRepository):

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_obj(self, workspace_id: int, rule_id: int) -> AutomationRule:
        result = await self.db.execute(
            select(AutomationRule).filter(
                AutomationRule.id == rule_id,
                AutomationRule.workspace_id == workspace_id,
            )
        )
        db_obj = result.scalars().first()
        if db_obj is None:
            raise RuleNotFound(f"Rule {rule_id} not found in workspace {workspace_id}")
        return db_obj

    async def _name_taken(self, workspace_id: int, name: str, exclude_id: Optional[int] = None) -> bool:
        query = select(AutomationRule.id).filter(
            AutomationRule.workspace_id == workspace_id,
            AutomationRule.name == name,
        )
        if exclude_id is not None:
            query = query.filter(AutomationRule.id != exclude_id)
        result = await self.db.execute(query)
        return result.first() is not None

    @staticmethod
    def _write(db_obj: AutomationRule, rule: RuleBase) -> None:
        db_obj.name = rule.name
        db_obj.description = rule.description
        db_obj.is_enabled = rule.is_enabled
        db_obj.trigger = rule.trigger
        db_obj.conditions_operator = rule.conditions_operator
        db_obj.actions_operator = rule.actions_operator
        db_obj.conditions = [condition.model_dump(mode="json") for condition in rule.conditions]
        db_obj.actions = [action.model_dump(mode="json") for action in rule.actions]
        db_obj.message_analysis_rules = (
            rule.message_analysis_rules.model_dump(mode="json") if rule.message_analysis_rules else None
        )

    async def list(self, workspace_id: int, enabled_only: bool = False, skip: int = 0, limit: Optional[int] = None) -> List[Rule]:
        query = select(AutomationRule).filter(AutomationRule.workspace_id == workspace_id)
        if enabled_only:
            query = query.filter(AutomationRule.is_enabled == True)
        query = query.order_by(AutomationRule.id).offset(skip)
        if limit is not None:
            query = query.limit(limit)

        result = await self.db.execute(query)
        return [Rule.model_validate(db_obj) for db_obj in result.scalars().all()]

    async def get(self, workspace_id: int, rule_id: int) -> Rule:
        return Rule.model_validate(await self._get_obj(workspace_id, rule_id))

    async def create(self, workspace_id: int, rule_in: RuleCreate, created_by: Optional[int] = None) -> Rule:
        validate_rule(rule_in)
        if await self._name_taken(workspace_id, rule_in.name):
            raise DuplicateRuleName(f"A rule named '{rule_in.name}' already exists in this workspace")

        db_obj = AutomationRule(workspace_id=workspace_id, created_by=created_by)
        self._write(db_obj, normalize_rule(rule_in))
        self.db.add(db_obj)
        await self.db.commit()
        await self.db.refresh(db_obj)

        logger.info(f"Created rule {db_obj.name} ({db_obj.trigger}) for workspace {workspace_id}")
        return Rule.model_validate(db_obj)

    async def update(self, workspace_id: int, rule_id: int, rule_in: RuleUpdate) -> Rule:
        db_obj = await self._get_obj(workspace_id, rule_id)
        current = Rule.model_validate(db_obj)

        # Conditions and actions are replaced wholesale; the rest is patched field by field
        update_data = rule_in.model_dump(exclude_unset=True)
        merged = RuleBase.model_validate({
            **current.model_dump(include=set(RuleBase.model_fields)),
            **update_data,
        })
        validate_rule(merged)

        if merged.name != current.name and await self._name_taken(workspace_id, merged.name, exclude_id=rule_id):
            raise DuplicateRuleName(f"A rule named '{merged.name}' already exists in this workspace")

        self._write(db_obj, normalize_rule(merged))
        await self.db.commit()
        await self.db.refresh(db_obj)

        logger.info(f"Updated rule {db_obj.name} for workspace {workspace_id}")
        return Rule.model_validate(db_obj)

    async def toggle(self, workspace_id: int, rule_id: int, is_enabled: bool) -> Rule:
        db_obj = await self._get_obj(workspace_id, rule_id)
        db_obj.is_enabled = is_enabled
        await self.db.commit()
        await self.db.refresh(db_obj)

        status_text = "enabled" if is_enabled else "disabled"
        logger.info(f"Rule {db_obj.name} {status_text} for workspace {workspace_id}")
        return Rule.model_validate(db_obj)

    async def duplicate(self, workspace_id: int, rule_id: int) -> Rule:
        original = await self._get_obj(workspace_id, rule_id)

        copy_name = self._copy_name(original.name, 1)
        counter = 1
        while await self._name_taken(workspace_id, copy_name):
            counter += 1
            copy_name = self._copy_name(original.name, counter)

        db_obj = AutomationRule(
            workspace_id=workspace_id,
            name=copy_name,
            description=original.description,
            is_enabled=False,  # copies start disabled
            trigger=original.trigger,
            conditions_operator=original.conditions_operator,
            actions_operator=original.actions_operator,
            conditions=list(original.conditions or []),
            actions=list(original.actions or []),
            message_analysis_rules=dict(original.message_analysis_rules) if original.message_analysis_rules else None,
            created_by=original.created_by,
        )
        self.db.add(db_obj)
        await self.db.commit()
        await self.db.refresh(db_obj)

        logger.info(f"Duplicated rule {original.name} as {copy_name} for workspace {workspace_id}")
        return Rule.model_validate(db_obj)

    @staticmethod
    def _copy_name(name: str, counter: int) -> str:
        suffix = " (Copy)" if counter == 1 else f" (Copy {counter})"
        return name[:MAX_NAME_LENGTH - len(suffix)].rstrip() + suffix

    async def delete(self, workspace_id: int, rule_id: int) -> None:
        db_obj = await self._get_obj(workspace_id, rule_id)
        name = db_obj.name
        await self.db.delete(db_obj)
        await self.db.commit()
        log_important(f"Deleted rule {name} (id {rule_id}) from workspace {workspace_id}")

    async def get_stats(self, workspace_id: int) -> RuleStats:
        total = await self.db.execute(
            select(func.count()).select_from(AutomationRule).filter(AutomationRule.workspace_id == workspace_id)
        )
        enabled = await self.db.execute(
            select(func.count()).select_from(AutomationRule).filter(
                AutomationRule.workspace_id == workspace_id,
                AutomationRule.is_enabled == True,
            )
        )
        return RuleStats(total_count=total.scalar() or 0, enabled_count=enabled.scalar() or 0)
