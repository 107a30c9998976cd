"""Built-in CLI sub-commands for tearoute.

* :mod:`~tearoute.commands.call` -- invoke one route and print the result.
* :mod:`~tearoute.commands.inspect` -- list the routes of a route table.
* :mod:`~tearoute.commands.cache` -- inspect and clear the disk cache.

Single commands export a plain callback registered on the root app;
multi-command groups export a :class:`typer.Typer` sub-application.
"""
