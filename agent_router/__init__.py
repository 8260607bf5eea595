"""Agent task-routing and execution engine."""
