"""TripBoard backend: group polls, votes and schedule finalization for trips."""
