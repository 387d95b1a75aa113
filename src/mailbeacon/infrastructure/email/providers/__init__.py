"""Protocol adapters, one per supported mail protocol."""
