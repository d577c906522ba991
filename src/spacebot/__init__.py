"""
SpaceBot - Discord automation bot

SpaceBot lets server administrators describe automations as stored rules:
when an event of a given type happens in a guild and the rule's filters
match, the rule's actions run in order.

Core Components:

- **Automation engine** (`spacebot.automation`): filter evaluation, template
  rendering, dynamic parameter resolution and the action executor, driven by
  the `AutomationRunner`.
- **Persistence** (`spacebot.database`): aiosqlite storage of rules and
  execution logs with a short-lived rule cache.
- **Gateway listener** (`spacebot.bot`): py-cord cog that turns gateway
  callbacks into normalized events and hands them to the runner.

Usage:
    from spacebot.main import main
    main()
"""
