# ledger/share_settings.py
from decimal import Decimal
from typing import List, Optional, Tuple

from extensions import db
from models import User, AgentShareSetting, ShareSettingHistory, ChangeType
from ledger.audit import record_operation
from ledger.commands import ShareSettingsUpdate
from ledger.downline import DownlineAggregator
from ledger.permissions import PermissionGuard

# Node-level percentages are recorded in history under this scope.
NODE_SCOPE = "all"


class ShareSettingsService:
    """Share / rebate edits. Every value that actually changes leaves a history row."""

    def __init__(self, session=None, guard: Optional[PermissionGuard] = None):
        self.session = session or db.session
        self.guard = guard or PermissionGuard(DownlineAggregator(self.session))

    def get_settings(self, requester: User, target_id: int) -> Tuple[User, List[AgentShareSetting]]:
        target = self.guard.ensure_view(requester, self.session.get(User, target_id))
        settings = (
            self.session.query(AgentShareSetting)
            .filter_by(agent_id=target.id)
            .order_by(AgentShareSetting.game_category, AgentShareSetting.platform)
            .all()
        )
        return target, settings

    def history_query(self, requester: User, target_id: int):
        target = self.guard.ensure_view(requester, self.session.get(User, target_id))
        return (
            self.session.query(ShareSettingHistory)
            .filter_by(agent_id=target.id)
            .order_by(ShareSettingHistory.created_at.desc(), ShareSettingHistory.id.desc())
        )

    def update(self, requester: User, target_id: int, command: ShareSettingsUpdate,
               ip_address: Optional[str] = None) -> int:
        """Apply the update; returns the number of history rows written."""
        target = self.guard.ensure_mutation(requester, self.session.get(User, target_id))
        history_rows = 0
        try:
            if command.share_percent is not None:
                history_rows += self._record_change(
                    requester, target, ChangeType.SHARE, target.share_percent, command.share_percent,
                    NODE_SCOPE, NODE_SCOPE,
                )
                target.share_percent = command.share_percent
            if command.rebate_percent is not None:
                history_rows += self._record_change(
                    requester, target, ChangeType.REBATE, target.rebate_percent, command.rebate_percent,
                    NODE_SCOPE, NODE_SCOPE,
                )
                target.rebate_percent = command.rebate_percent

            for setting in command.settings:
                existing = self.session.query(AgentShareSetting).filter_by(
                    agent_id=target.id,
                    game_category=setting.game_category,
                    platform=setting.platform,
                ).first()

                if existing is None:
                    self.session.add(AgentShareSetting(
                        agent_id=target.id,
                        game_category=setting.game_category,
                        platform=setting.platform,
                        share_percent=setting.share_percent,
                        rebate_percent=setting.rebate_percent,
                        enabled=setting.enabled,
                    ))
                    continue

                history_rows += self._record_change(
                    requester, target, ChangeType.SHARE, existing.share_percent, setting.share_percent,
                    setting.game_category, setting.platform,
                )
                history_rows += self._record_change(
                    requester, target, ChangeType.REBATE, existing.rebate_percent, setting.rebate_percent,
                    setting.game_category, setting.platform,
                )
                existing.share_percent = setting.share_percent
                existing.rebate_percent = setting.rebate_percent
                existing.enabled = setting.enabled

            record_operation(
                self.session,
                operator_id=requester.id,
                action="update_share_settings",
                target_id=target.id,
                details={
                    "sharePercent": str(command.share_percent) if command.share_percent is not None else None,
                    "rebatePercent": str(command.rebate_percent) if command.rebate_percent is not None else None,
                    "settingsCount": len(command.settings),
                },
                ip_address=ip_address,
            )
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        return history_rows

    def _record_change(self, requester: User, target: User, change_type: ChangeType,
                       old_value, new_value: Decimal, game_category: str, platform: str) -> int:
        old_value = Decimal(old_value or 0)
        if old_value == new_value:
            return 0
        self.session.add(ShareSettingHistory(
            agent_id=target.id,
            operator_id=requester.id,
            change_type=change_type.value,
            old_value=old_value,
            new_value=new_value,
            game_category=game_category,
            platform=platform,
        ))
        return 1
