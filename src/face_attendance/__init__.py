"""Face Attendance package.

Feature modules (users, faces, classes, attendance, notifications) each carry
a domain model, repository interfaces with MySQL implementations, a service
layer and a thin Flask controller.
"""
