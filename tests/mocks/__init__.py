from .fake_ozon import FakeOzonApi, Reply
