from locust import HttpUser, task, between
import random

API = "/api/v1"


class ShopperUser(HttpUser):
    wait_time = between(0.1, 0.5)

    def on_start(self):
        # Learn how many catalogue pages exist for this simulated client
        r = self.client.get(f"{API}/product/product-count")
        if r.status_code == 200:
            total = r.json()["data"]["total"]
            self.pages = max(1, -(-total // 6))
        else:
            self.pages = 1

    @task(3)
    def browse_page(self):
        page = random.randint(1, self.pages)
        self.client.get(f"{API}/product/product-list/{page}", name="/product/product-list/[page]")

    @task(2)
    def search(self):
        keyword = random.choice(["mug", "lamp", "shirt", "phone"])
        self.client.get(f"{API}/product/search/{keyword}", name="/product/search/[keyword]")

    @task(1)
    def filter_by_price(self):
        low = random.randint(0, 50)
        self.client.post(f"{API}/product/product-filters", json={"price_range": [low, low + 50]})

    @task(1)
    def categories(self):
        self.client.get(f"{API}/category/get-category")
