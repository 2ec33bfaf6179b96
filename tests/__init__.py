"""Test suite for the JobQuest saved-jobs service."""
