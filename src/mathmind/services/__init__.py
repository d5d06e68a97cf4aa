"""
MathMind engine services.

graph_service     - task graph registration, validation and traversal
attempt_service   - per-student attempt state machine
ledger_service    - append-only mistake ledger
analytics_service - teacher-facing aggregates over the ledger
classroom_service - topics, students, classes and enrollment
ingest            - JSON import of topics and task graphs
assistant         - lesson texts built from class mistake statistics
"""
