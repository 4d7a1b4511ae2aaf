"""Jinja2 templates bundled with manuscript.

- docker-compose.yml.j2: containers for one job (job manager, task manager,
  Postgres, GraphQL engine)
- manuscript.yaml.j2: descriptor written by ``manuscript-cli init``
"""
