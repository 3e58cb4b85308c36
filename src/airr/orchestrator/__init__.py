"""Task routing and execution orchestration.

The decision engine is a pure function of (task kind, SLA tier, budget
ceiling) over an injected backend catalog. Everything stateful lives behind
``RouterRepository``: a task gets exactly one routing decision, written in the
same transaction that moves it to ``routed``, and one execution record per
attempt, appended only while the task is ``running``.
"""
