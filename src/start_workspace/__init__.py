"""Start a Coder workspace from a GitHub Actions workflow.

This package implements the start-workspace action, providing:
- GitHub to Coder identity resolution (REST API or ``coder`` CLI)
- Workspace parameter parsing from YAML
- Workspace creation (REST API or ``coder create``)
- Progress reporting on a single GitHub issue comment
"""
