"""
Discord bot cogs and event handlers for Levelcord.

- **events_listener.py**: Bot lifecycle logging (on_ready) and command error replies
- **message_listener.py**: Hands every human guild message to the leveling service
- **level_cmds.py**: ``/level``, ``/levels`` and ``/ping``
- **level_admin_cmds.py**: ``/leveladmin`` configuration and maintenance subcommands
"""
