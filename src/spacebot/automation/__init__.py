"""
Automation engine for SpaceBot.

- **template.py**: ``{path.to.value}`` placeholder rendering.
- **filters.py**: trigger filter predicates.
- **values.py**: ``option:<name>`` and target user resolution.
- **context.py**: template variable context for an event.
- **action_configs.py**: typed views over raw action config.
- **actions.py**: `ActionExecutor`, the Discord side of each action.
- **runner.py**: `AutomationRunner`, which drives one event through every matching rule.
- **catalog.py**: action and filter metadata for editors.
"""
