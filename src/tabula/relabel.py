"""Re-render registered label templates when their tab changes position."""

from __future__ import annotations

from typing import Callable

from loguru import logger

from tabula.errors import TemplateError
from tabula.reconciler import IdentityReconciler
from tabula.snapshot import RenameAction
from tabula.tab_format import format_tab_name


def auto_update_tab_names(
    reconciler: IdentityReconciler,
    rename_tab: Callable[[int, str], None],
    trace_id: str | None = None,
) -> list[RenameAction]:
    """Rename every templated tab whose display index moved since its last render.

    Reconciliation runs on every host update, far more often than tabs
    actually move, so tabs still at their last known position are left alone.
    A tab with a template but no recorded position is always rendered.

    Args:
        reconciler: Mappings after the reconciliation pass that just ran.
        rename_tab: Outbound rename sink, called as ``rename_tab(stable_id, name)``.
        trace_id: Correlation id of the triggering pass.

    Returns:
        The rename actions issued, in stable id order.
    """
    current_positions = reconciler.stable_id_positions()
    actions: list[RenameAction] = []

    for stable_id, template in sorted(reconciler.stable_id_to_template.items()):
        new_position = current_positions.get(stable_id)
        if new_position is None:
            continue
        last_position = reconciler.stable_id_to_last_position.get(stable_id)
        if new_position == last_position:
            continue

        try:
            new_name = format_tab_name(template, new_position)
        except TemplateError as e:
            logger.warning(
                "Stored template failed to render, skipping auto-update",
                operation="auto_update_tab_names",
                status="skip",
                trace_id=trace_id,
                stable_id=stable_id,
                template=template,
                error=str(e)
            )
            continue

        rename_tab(stable_id, new_name)
        reconciler.mark_position(stable_id, new_position)
        actions.append(RenameAction(target=stable_id, label=new_name))
        logger.info(
            "Tab renamed after position change",
            operation="auto_update_tab_names",
            status="renamed",
            trace_id=trace_id,
            stable_id=stable_id,
            old_position=last_position,
            new_position=new_position,
            name=new_name
        )

    return actions
