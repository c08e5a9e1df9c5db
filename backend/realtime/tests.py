from asgiref.sync import sync_to_async
from channels.layers import get_channel_layer
from django.test import SimpleTestCase

from .notifications import notify, publish_change


class NotificationTests(SimpleTestCase):

	async def _listen(self, group):
		layer = get_channel_layer()
		channel = await layer.new_channel()
		await layer.group_add(group, channel)
		return layer, channel

	async def test_publish_change_reaches_resource_group(self):
		layer, channel = await self._listen('booking_42')

		sent = await sync_to_async(publish_change)('booking', 42, booking_status='accepted')
		message = await layer.receive(channel)

		self.assertTrue(sent)
		self.assertEqual(message['type'], 'resource_changed')
		self.assertEqual(message['id'], 42)
		self.assertEqual(message['booking_status'], 'accepted')

	async def test_notify_targets_user_group(self):
		layer, channel = await self._listen('user_7')

		await sync_to_async(notify)('payment_released', 7, 'Paid', extra={'booking_id': 3})
		message = await layer.receive(channel)

		self.assertEqual(message['type'], 'notification')
		self.assertEqual(message['event'], 'payment_released')
		self.assertEqual(message['booking_id'], 3)

	def test_notify_without_recipient_is_skipped(self):
		self.assertFalse(notify('booking_accepted', None, 'ignored'))
