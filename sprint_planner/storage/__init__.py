"""Read-side storage for projects, teams, sprints and issues."""
