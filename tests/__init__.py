"""
Test Suite for the Trading Dashboard

Unit tests for the cache store, job models, polling engine, submitter and
session recovery, plus dashboard and CLI tests against a scripted server.
"""
