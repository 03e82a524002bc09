"""Center Attendance package.

This package is organized by feature modules (centers, users, attendance, reports)
with a thin Flask controller layer and service/repository layers underneath.
"""
