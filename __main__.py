"""
Pulumi program for the web front end.
This file allows the Automation API to use local program pattern.
"""
from deploy import create_pulumi_program

create_pulumi_program()
