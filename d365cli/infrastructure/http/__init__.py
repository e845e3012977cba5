"""httpx based send capability for the dispatcher."""
